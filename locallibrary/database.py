import asyncio
import logging
from typing import Any, Callable, Tuple

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from starlette.concurrency import run_in_threadpool


logger = logging.getLogger(__name__)

Base = declarative_base()


class Store:
    """
    Long-lived handle to the catalog database.

    Created once by create_app() and shared by every request. Each call
    runs a plain function against its own short-lived session, so several
    reads for one page can run side by side on the worker thread pool.

    Internal Working:
    1. call() opens a session, runs fn(session, *args) and commits
    2. Any exception rolls the session back and propagates to the caller
    3. expire_on_commit=False keeps loaded attributes readable after close
    4. run() moves call() onto the thread pool so the event loop is free
    5. gather() joins several run() calls with asyncio.gather
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False}
            if database_url.startswith("sqlite")
            else {},
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        db: Session = self.SessionLocal()
        try:
            result = fn(db, *args)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await run_in_threadpool(self.call, fn, *args)

    async def gather(self, *calls: Tuple[Any, ...]) -> list:
        """
        Run independent store calls concurrently and wait for all of them.

        Each call is a tuple of (function, *args). Results come back in the
        order the calls were given. The first failure propagates.
        """
        return await asyncio.gather(*(self.run(fn, *args) for fn, *args in calls))

    def dispose(self) -> None:
        self.engine.dispose()


def get_store(request: Request) -> Store:
    """
    Dependency function that provides the application's store handle.

    The store lives on app.state, set up by create_app(), so tests can
    build an app against their own database without touching globals.
    """
    return request.app.state.store
