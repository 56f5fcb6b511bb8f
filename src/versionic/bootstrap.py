"""
Single entry-point that wires SQLAlchemy into versionic.
Call once, e.g. in FastAPI startup or a CLI's main().
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .clock import Clock
from .config import Settings
from .persistence.models import BOOKS, Base
from .persistence.store import VersionedStore
from .service import CatalogService


def make_engine(settings: Settings) -> Engine:
    connect_args = {}
    if settings.database_url.startswith("sqlite"):
        # sessions are opened from request worker threads
        connect_args["check_same_thread"] = False
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        future=True,
        echo=settings.echo_sql,
        connect_args=connect_args,
    )


def init_versionic(
    engine: Engine, settings: Settings | None = None, *, clock: Clock | None = None
) -> CatalogService:
    """
    Create the current/history tables and return a ready CatalogService
    configured from ``settings``.
    """
    settings = settings or Settings()
    Base.metadata.create_all(engine)  # ← this line creates both tables
    store = VersionedStore(
        engine,
        BOOKS,
        clock=clock,
        update_policy=settings.update_policy,
        delete_policy=settings.delete_policy,
        lock_timeout=settings.lock_timeout,
        max_attempts=settings.max_attempts,
    )
    return CatalogService(store, field_policy=settings.field_policy)
