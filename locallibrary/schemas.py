from datetime import date
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


class BookInstanceStatus(str, Enum):
    """Circulation status of a single copy."""

    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    LOANED = "Loaned"
    RESERVED = "Reserved"


class GenreCreate(BaseModel):
    """
    Schema for a validated genre form.

    Used for both create and update; the form carries every field each time.
    Lengths are enforced on the raw input by the genre rules, so name holds
    the escaped text without a length limit of its own.
    """

    name: str = Field(..., description="Escaped genre name")


class AuthorCreate(BaseModel):
    """
    Schema for a validated author form.

    Dates are optional. When both are given, death may not precede birth.
    """

    first_name: str
    family_name: str
    date_of_birth: Optional[date] = None
    date_of_death: Optional[date] = None

    @field_validator("date_of_death")
    @classmethod
    def check_death_after_birth(cls, value, info):
        birth = info.data.get("date_of_birth")
        if value and birth and value < birth:
            raise ValueError("Date of death must not be before date of birth")
        return value


class BookCreate(BaseModel):
    """
    Schema for a validated book form.

    author holds the id of the author record; genre holds zero or more
    genre ids taken from the form's checkboxes.
    """

    title: str
    author: str
    summary: str
    isbn: str
    genre: List[str] = []


class BookInstanceCreate(BaseModel):
    """Schema for a validated book instance form."""

    book: str
    imprint: str
    status: BookInstanceStatus = BookInstanceStatus.MAINTENANCE
    due_back: Optional[date] = None
