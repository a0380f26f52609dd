"""
Store Selection

Picks, once per process and per domain, whether the live store or the
in-memory fallback serves requests:

1. Try the live store within the configured timeout (retries included)
2. On any failure, log a warning and start the in-memory store instead
3. Keep that choice for the life of the process

The only fatal outcome is the in-memory store itself failing to start.
"""

import asyncio
from typing import Callable, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient
from sqlalchemy.ext.asyncio import create_async_engine
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_core.audit.logger import AuditLogger
from finance_core.config.settings import (
    DocumentStoreSettings,
    RelationalStoreSettings,
    StoreSelectionSettings,
    get_settings,
)
from finance_core.services.storage.interface import (
    InternalStoreError,
    StoreMode,
    StoreUnavailableError,
    TransactionRepositoryInterface,
    UserRepositoryInterface,
)
from finance_core.services.storage.memory_document import InMemoryTransactionRepository
from finance_core.services.storage.memory_relational import InMemoryUserRepository
from finance_core.services.storage.mongo_transactions import MongoTransactionRepository
from finance_core.services.storage.sql_users import SqlUserRepository


logger = structlog.get_logger(__name__)


async def connect_with_retry(probe: Callable, selection: StoreSelectionSettings) -> None:
    """
    Run a connection probe with retries, bounded by the connect timeout.

    Raises:
        StoreUnavailableError: If every attempt failed or time ran out
    """
    attempt = retry(
        stop=stop_after_attempt(selection.connect_attempts),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )(probe)

    try:
        await asyncio.wait_for(attempt(), timeout=selection.connect_timeout_seconds)
    except Exception as e:
        raise StoreUnavailableError(str(e) or type(e).__name__) from e


class StoreSelector:
    """
    Decides live vs fallback for the user and transaction stores.

    Each domain is decided independently: an unreachable MongoDB does not
    take the SQL store down with it.
    """

    def __init__(
        self,
        relational: Optional[RelationalStoreSettings] = None,
        document: Optional[DocumentStoreSettings] = None,
        selection: Optional[StoreSelectionSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        mongo_client_factory: Optional[Callable] = None,
    ):
        settings = get_settings()
        self._relational = relational or settings.relational
        self._document = document or settings.document
        self._selection = selection or settings.selection
        self._audit = audit_logger or AuditLogger()
        self._mongo_client_factory = mongo_client_factory or AsyncIOMotorClient

        self._users: Optional[UserRepositoryInterface] = None
        self._transactions: Optional[TransactionRepositoryInterface] = None
        self._user_lock = asyncio.Lock()
        self._transaction_lock = asyncio.Lock()

    @property
    def selection(self) -> StoreSelectionSettings:
        return self._selection

    @property
    def modes(self) -> dict[str, StoreMode]:
        """Mode per domain decided so far."""
        modes = {}
        if self._users is not None:
            modes["user"] = self._users.mode
        if self._transactions is not None:
            modes["transaction"] = self._transactions.mode
        return modes

    async def select_user_repository(self) -> UserRepositoryInterface:
        async with self._user_lock:
            if self._users is None:
                self._users = await self._select_users()
            return self._users

    async def select_transaction_repository(self) -> TransactionRepositoryInterface:
        async with self._transaction_lock:
            if self._transactions is None:
                self._transactions = await self._select_transactions()
            return self._transactions

    # -------------------------------------------------------------------------
    # Per-domain selection
    # -------------------------------------------------------------------------

    def _engine_options(self) -> dict:
        options = {"echo": self._relational.echo}
        url = self._relational.url
        if not url.startswith("sqlite"):
            options["pool_size"] = self._relational.pool_size
            options["pool_pre_ping"] = True
        if "+asyncpg" in url:
            options["connect_args"] = {"timeout": self._selection.connect_timeout_seconds}
        return options

    async def _select_users(self) -> UserRepositoryInterface:
        if self._selection.force_fallback:
            return await self._fallback("user", InMemoryUserRepository)

        engine = None
        try:
            engine = create_async_engine(self._relational.url, **self._engine_options())
            repository = SqlUserRepository(engine)
            await connect_with_retry(repository.create_schema, self._selection)
        except Exception as e:
            if engine is not None:
                await engine.dispose()
            return await self._fallback("user", InMemoryUserRepository, reason=str(e))

        return await self._live("user", repository)

    async def _select_transactions(self) -> TransactionRepositoryInterface:
        if self._selection.force_fallback:
            return await self._fallback("transaction", InMemoryTransactionRepository)

        client = None
        try:
            client = self._mongo_client_factory(
                self._document.uri,
                serverSelectionTimeoutMS=int(self._selection.connect_timeout_seconds * 1000),
            )
            collection = client[self._document.database][self._document.collection]
            repository = MongoTransactionRepository(collection, client)
            await connect_with_retry(repository.ensure_indexes, self._selection)
        except Exception as e:
            if client is not None:
                client.close()
            return await self._fallback(
                "transaction", InMemoryTransactionRepository, reason=str(e)
            )

        return await self._live("transaction", repository)

    async def _live(self, domain: str, repository):
        logger.info("store_mode_selected", domain=domain, mode=StoreMode.LIVE.value)
        await self._audit.log_store_mode(domain, StoreMode.LIVE.value)
        return repository

    async def _fallback(
        self,
        domain: str,
        factory: Callable,
        reason: Optional[str] = None,
    ):
        if reason is None:
            logger.info("fallback_forced", domain=domain)
        else:
            logger.warning("live_store_unavailable", domain=domain, reason=reason)
            await self._audit.log_live_store_unavailable(domain, reason)

        try:
            repository = factory()
        except Exception as e:
            logger.error("fallback_store_failed", domain=domain, error=str(e))
            raise InternalStoreError(f"In-memory {domain} store failed to start: {e}") from e

        logger.info("store_mode_selected", domain=domain, mode=StoreMode.FALLBACK.value)
        await self._audit.log_store_mode(domain, StoreMode.FALLBACK.value)
        return repository
