"""SQLite store handle, schema management and the process-wide holder."""

import logging
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy import MetaData, create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from common.core.errors import InvalidOperationException
from common.core.shutdown import LifetimeEvent
from common.live import InvalidationTracker, LiveQuery
from inventory.config import Settings
from inventory.models import Base
from inventory.services.item_dao import ItemDao

if TYPE_CHECKING:
    from common.core.shutdown import ShutdownCoordinatorProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Bump whenever the model metadata changes. A store stamped with any other
# version is wiped and rebuilt on open.
SCHEMA_VERSION = 1


def create_database_engine(settings: Settings) -> Engine:
    url = make_url(settings.database_url)
    options = dict(settings.sqlalchemy_engine_options)

    if url.database in (None, "", ":memory:"):
        # One shared connection, otherwise every thread sees its own empty store
        options.setdefault("poolclass", StaticPool)
        options.setdefault("connect_args", {"check_same_thread": False})
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(url, echo=settings.db_echo, **options)


def get_schema_version(engine: Engine) -> int:
    with engine.connect() as conn:
        return _read_schema_version(conn)


def _read_schema_version(conn: Connection) -> int:
    return int(conn.exec_driver_sql("PRAGMA user_version").scalar() or 0)


def check_db_connection(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.warning(f"Checking database connection failed: {e}")
        return False


def upgrade_database(engine: Engine, recreate: bool = False) -> bool:
    """Make the store match the current schema.

    There is no upgrade path: a store stamped with a different version loses
    all of its tables and is rebuilt from the model metadata.

    Returns:
        True if the schema was (re)created, False if it was already current
    """
    with engine.begin() as conn:
        current = _read_schema_version(conn)

        if current == SCHEMA_VERSION and not recreate:
            Base.metadata.create_all(conn)
            return False

        existing = MetaData()
        existing.reflect(bind=conn)
        if existing.tables:
            logger.warning(
                f"Dropping {len(existing.tables)} table(s) of schema version {current}, "
                f"expected version {SCHEMA_VERSION}"
            )
            existing.drop_all(bind=conn)

        Base.metadata.create_all(conn)
        conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")

    logger.info(f"Created schema version {SCHEMA_VERSION}")
    return True


class InventoryDatabase:
    """The single handle to the inventory store.

    Owns the engine, the session factory, the invalidation tracker live
    queries listen on, and the executor those queries run on. All physical
    access goes through transaction() or session(), which serialize on one
    lock.
    """

    def __init__(
        self,
        engine: Engine,
        query_max_workers: int = 2,
        shutdown_coordinator: "ShutdownCoordinatorProtocol | None" = None,
    ) -> None:
        self.engine = engine
        self.invalidation_tracker = InvalidationTracker()
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=engine, autoflush=True, expire_on_commit=False
        )
        self._lock = threading.RLock()
        self._query_executor = ThreadPoolExecutor(
            max_workers=query_max_workers, thread_name_prefix="inventory-query"
        )
        self._closed = False
        self._item_dao = ItemDao(self)

        if shutdown_coordinator is not None:
            shutdown_coordinator.register_lifetime_notification(self._on_lifetime_event)

    @classmethod
    def open(
        cls,
        settings: Settings,
        shutdown_coordinator: "ShutdownCoordinatorProtocol | None" = None,
    ) -> "InventoryDatabase":
        """Open (or create) the store described by settings."""
        engine = create_database_engine(settings)
        upgrade_database(engine)
        logger.info(f"Opened inventory database {engine.url.render_as_string()}")
        return cls(engine, settings.query_max_workers, shutdown_coordinator)

    def item_dao(self) -> ItemDao:
        return self._item_dao

    @property
    def is_closed(self) -> bool:
        return self._closed

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session for one atomic write; commits on success, rolls back on error."""
        self._ensure_open()
        with self._lock:
            session = self._session_maker()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session for reads. Objects loaded in it are detached on exit."""
        self._ensure_open()
        with self._lock:
            session = self._session_maker()
            try:
                yield session
            finally:
                session.close()

    def create_live_query(
        self, name: str, tables: list[str], query: Callable[[], T]
    ) -> LiveQuery[T]:
        return LiveQuery(
            name, tables, query, self.invalidation_tracker, self._query_executor
        )

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._query_executor.shutdown(wait=True, cancel_futures=True)
        self.engine.dispose()
        logger.info("Inventory database closed")

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidOperationException(
                "access the item store", "the database has been closed"
            )

    def _on_lifetime_event(self, event: LifetimeEvent) -> None:
        if event == LifetimeEvent.SHUTDOWN:
            self.close()


class DatabaseHolder:
    """Creates the InventoryDatabase at most once and hands out that instance."""

    def __init__(
        self, shutdown_coordinator: "ShutdownCoordinatorProtocol | None" = None
    ) -> None:
        self._shutdown_coordinator = shutdown_coordinator
        self._instance: InventoryDatabase | None = None
        self._lock = threading.Lock()

    def get_database(self, settings: Settings) -> InventoryDatabase:
        instance = self._instance
        if instance is not None:
            return instance

        with self._lock:
            if self._instance is None:
                self._instance = InventoryDatabase.open(settings, self._shutdown_coordinator)
            return self._instance

    def reset(self) -> None:
        """Close and forget the current instance, if any."""
        with self._lock:
            instance, self._instance = self._instance, None

        if instance is not None:
            instance.close()
