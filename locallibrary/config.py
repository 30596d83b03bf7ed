"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables from a .env file, if present
load_dotenv()


class Config:
    """
    Application configuration.

    Pass a subclass to create_app() to override values, e.g. in tests.
    """

    # Store
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./library.db")

    # "development" shows error details on the error page
    APP_ENV = os.getenv("APP_ENV", "production")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = int(os.getenv("PORT", "8000"))

    # Scripts allowed by the Content-Security-Policy header
    SCRIPT_SOURCES = ("'self'", "code.jquery.com", "cdn.jsdelivr.net")

    @classmethod
    def is_development(cls) -> bool:
        return cls.APP_ENV.lower() == "development"
