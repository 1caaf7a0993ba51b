"""
Database Facade

Owns the five collections for the lifetime of the application and
manages their lifecycle:

    UNINITIALIZED --open()--> INITIALIZING --ok--> READY --close()--> UNINITIALIZED
                                   |
                                   +--failure--> UNINITIALIZED

DESIGN DECISION: The Database is an explicit object constructed by the
application entry point and passed to whoever needs it. There is no
module-level instance. Concurrent open() calls share one in-flight
initialization task; a failed task is discarded so the next open()
genuinely retries.
"""

import asyncio
from enum import Enum
from typing import Callable, Mapping, Optional

import structlog

from moneystore.audit import AuditLogger
from moneystore.config import StoreSettings
from moneystore.database.batch import WriteBatch
from moneystore.database.collection import Collection
from moneystore.database.environment import Clock, IdGenerator, generate_id, system_clock
from moneystore.database.errors import InitializationError, NotReadyError
from moneystore.models.records import CollectionName
from moneystore.services.storage import InMemoryStorageBackend, StorageBackend
from moneystore.validation import SCHEMA_REGISTRY, CollectionSchema, SchemaValidator


logger = structlog.get_logger("moneystore.database")


class DatabaseState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class Database:
    """
    Lifecycle manager and single owner of all collections.

    Usage:
        db = Database(settings)
        await db.open()
        account = await db.accounts.insert({...})
        await db.close()

    or:
        async with Database(settings) as db:
            ...
    """

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        *,
        backend_factory: Optional[Callable[[], StorageBackend]] = None,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
        audit_logger: Optional[AuditLogger] = None,
        schemas: Optional[Mapping[CollectionName, CollectionSchema]] = None,
    ):
        """
        Args:
            settings: Store settings. Loaded from the environment if None.
            backend_factory: Builds a fresh backend on every initialization.
                             In-memory by default.
            clock: Source of "now" in epoch milliseconds
            id_generator: Source of primary keys for records inserted without one
            audit_logger: Where writes are recorded. Local structlog only if None.
            schemas: Schema registry override (tests)
        """
        self._settings = settings or StoreSettings()
        self._backend_factory = backend_factory or InMemoryStorageBackend
        self._clock = clock or system_clock
        self._id_generator = id_generator or generate_id
        self._audit_logger = audit_logger or AuditLogger()
        self._schemas = dict(schemas if schemas is not None else SCHEMA_REGISTRY)
        self._validator = SchemaValidator()

        self._state = DatabaseState.UNINITIALIZED
        self._init_task: Optional[asyncio.Task] = None
        self._backend: Optional[StorageBackend] = None
        self._collections: dict[CollectionName, Collection] = {}
        self._write_lock: Optional[asyncio.Lock] = None
        self._construction_count = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DatabaseState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is DatabaseState.READY

    @property
    def construction_count(self) -> int:
        """How many construction sequences have started over this object's lifetime."""
        return self._construction_count

    async def open(self) -> "Database":
        """
        Open the database, constructing all collections on first call.

        Callers arriving while construction is in flight await the same
        task. Cancelling one caller does not cancel construction.

        Raises:
            InitializationError: If construction failed. The database is
                                 back to UNINITIALIZED and open() may be retried.
        """
        if self._state is DatabaseState.READY:
            return self

        if self._init_task is None:
            self._state = DatabaseState.INITIALIZING
            self._init_task = asyncio.get_running_loop().create_task(self._initialize())

        await asyncio.shield(self._init_task)
        return self

    async def _initialize(self) -> None:
        self._construction_count += 1
        name = self._settings.database_name
        backend: Optional[StorageBackend] = None

        logger.info("database_initializing", database=name, construction=self._construction_count)
        try:
            backend = self._backend_factory()
            lock = asyncio.Lock()
            collections = {}
            for collection_name in CollectionName:
                schema = self._schemas.get(collection_name)
                if schema is None:
                    raise LookupError(f"No schema registered for {collection_name.value}")
                await backend.create_collection(collection_name.value)
                collections[collection_name] = Collection(
                    schema,
                    backend,
                    lock=lock,
                    clock=self._clock,
                    id_generator=self._id_generator,
                    validator=self._validator,
                    reference_resolver=(
                        self._reference_exists if self._settings.enforce_references else None
                    ),
                    audit_logger=self._audit_logger,
                )
        except asyncio.CancelledError:
            self._state = DatabaseState.UNINITIALIZED
            self._init_task = None
            if backend is not None:
                await self._release_failed_backend(backend)
            raise
        except Exception as e:
            self._state = DatabaseState.UNINITIALIZED
            self._init_task = None
            if backend is not None:
                await self._release_failed_backend(backend)
            await self._audit_logger.log_initialization_failed(name, e)
            raise InitializationError(f"Failed to initialize database {name}: {e}") from e

        self._backend = backend
        self._collections = collections
        self._write_lock = lock
        self._state = DatabaseState.READY
        self._init_task = None

        await self._audit_logger.log_database_opened(
            database_name=name,
            collections=[c.value for c in collections],
            construction=self._construction_count,
        )

    async def _release_failed_backend(self, backend: StorageBackend) -> None:
        try:
            await backend.close()
        except Exception as e:
            # The initialization error is the one raised; this one is only logged
            logger.error("backend_release_failed", error=str(e), error_type=type(e).__name__)

    async def close(self) -> None:
        """
        Release all collections and return to UNINITIALIZED.

        A no-op when the database is not open. Waits for an in-flight
        initialization first; if that initialization fails, there is
        nothing to close.
        """
        if self._init_task is not None:
            try:
                await asyncio.shield(self._init_task)
            except InitializationError:
                return

        if self._state is not DatabaseState.READY:
            return

        backend = self._backend
        for collection in self._collections.values():
            collection._detach()
        self._collections = {}
        self._backend = None
        self._write_lock = None
        self._state = DatabaseState.UNINITIALIZED

        await backend.close()
        await self._audit_logger.log_database_closed(self._settings.database_name)

    async def __aenter__(self) -> "Database":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def _ensure_ready(self) -> None:
        if self._state is not DatabaseState.READY:
            raise NotReadyError(
                f"Database {self._settings.database_name} is {self._state.value}; call open() first"
            )

    def collection(self, name: CollectionName) -> Collection:
        self._ensure_ready()
        return self._collections[CollectionName(name)]

    @property
    def accounts(self) -> Collection:
        return self.collection(CollectionName.ACCOUNTS)

    @property
    def transactions(self) -> Collection:
        return self.collection(CollectionName.TRANSACTIONS)

    @property
    def budgets(self) -> Collection:
        return self.collection(CollectionName.BUDGETS)

    @property
    def investments(self) -> Collection:
        return self.collection(CollectionName.INVESTMENTS)

    @property
    def goals(self) -> Collection:
        return self.collection(CollectionName.GOALS)

    @property
    def collections(self) -> dict[CollectionName, Collection]:
        self._ensure_ready()
        return dict(self._collections)

    @property
    def write_lock(self) -> asyncio.Lock:
        """The lock every write of this database holds while it runs."""
        self._ensure_ready()
        return self._write_lock

    def batch(self) -> WriteBatch:
        """Start an atomic multi-collection write."""
        self._ensure_ready()
        return WriteBatch(self)

    @property
    def schemas(self) -> dict[CollectionName, CollectionSchema]:
        return dict(self._schemas)

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def clock(self) -> Clock:
        return self._clock

    async def _reference_exists(self, target: CollectionName, key: str) -> bool:
        return await self._backend.contains(target.value, key)

    def __repr__(self) -> str:
        return f"Database({self._settings.database_name!r}, state={self._state.value})"
