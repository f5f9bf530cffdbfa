"""
Odoo XML-RPC Client

Handles communication with the Odoo ERP instance.
One HTTP round trip per call, no retries, uid cached per instance.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx

from .codec import decode_response, encode_call
from .exceptions import (
    OdooAuthenticationError,
    OdooConfigurationError,
    OdooDecodeError,
    OdooError,
    OdooProtocolFault,
)
from .transport import COMMON_ENDPOINT, OBJECT_ENDPOINT, XmlRpcTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of a write call.

    Odoo answering False is a logical failure, not a transport error;
    it is reported here instead of being raised. Truthy only on success.
    """

    success: bool
    model: str
    ids: tuple[int, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return self.success


@dataclass(frozen=True)
class ConnectionStatus:
    """Result of a connectivity check."""

    ok: bool
    uid: int | None = None
    error: str | None = None
    error_code: str | None = None


class OdooClient:
    """
    Async client for Odoo's XML-RPC API.

    State: unauthenticated until the first call that needs a uid, then
    authenticated for the lifetime of the instance. Task-safe: an
    asyncio.Lock guards the first authentication.

    Error Handling: every error raised carries the endpoint and the RPC
    method that failed in its details.
    """

    def __init__(
        self,
        url: str,
        db: str,
        user: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        missing = [
            name
            for name, value in (("url", url), ("db", db), ("user", user), ("api_key", api_key))
            if not value
        ]
        if missing:
            raise OdooConfigurationError(
                f"Missing Odoo connection parameters: {', '.join(missing)}",
                missing=missing,
            )

        self.url = url.rstrip("/")
        self.db = db
        self.user = user
        self.api_key = api_key

        self._transport = XmlRpcTransport(self.url, timeout=timeout, http_client=http_client)
        self._uid: int | None = None
        self._uid_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings, http_client: httpx.AsyncClient | None = None) -> "OdooClient":
        """Build a client from Settings, failing fast on missing variables."""
        connection = settings.odoo_connection()
        return cls(
            url=connection["url"],
            db=connection["db"],
            user=connection["user"],
            api_key=connection["api_key"],
            timeout=settings.odoo_timeout,
            http_client=http_client,
        )

    @property
    def uid(self) -> int | None:
        return self._uid

    @property
    def is_authenticated(self) -> bool:
        return self._uid is not None

    async def _rpc(
        self,
        endpoint: str,
        method: str,
        params: Sequence[Any],
        *,
        rpc_method: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Encode, send and decode one XML-RPC call."""
        rpc_method = rpc_method or method
        try:
            body = encode_call(method, params)
            logger.debug(f"POST {endpoint} {rpc_method} ({len(body)} bytes)")
            payload = await self._transport.post(endpoint, body, timeout=timeout)
            return decode_response(payload)
        except OdooError as e:
            e.annotate(endpoint=endpoint, rpc_method=rpc_method)
            raise

    async def version(self) -> dict:
        """Get Odoo server version"""
        return await self._rpc(COMMON_ENDPOINT, "version", ())

    async def authenticate(self) -> int:
        """
        Authenticate and return the user ID.

        Idempotent: once a uid is cached no further request is made.
        """
        if self._uid:
            return self._uid

        async with self._uid_lock:
            if self._uid:
                return self._uid

            try:
                uid = await self._rpc(
                    COMMON_ENDPOINT,
                    "authenticate",
                    (self.db, self.user, self.api_key, {}),
                )
            except OdooProtocolFault as e:
                raise OdooAuthenticationError(
                    e.message,
                    username=self.user,
                    database=self.db,
                    fault_code=e.fault_code,
                    endpoint=COMMON_ENDPOINT,
                    rpc_method="authenticate",
                ) from e

            if isinstance(uid, bool) or not isinstance(uid, int) or uid <= 0:
                raise OdooAuthenticationError(
                    "Authentication failed - check credentials",
                    username=self.user,
                    database=self.db,
                    endpoint=COMMON_ENDPOINT,
                    rpc_method="authenticate",
                )

            self._uid = uid
            logger.info(f"Authenticated to {self.url} (db={self.db}) as uid {uid}")
            return uid

    async def execute_kw(
        self,
        model: str,
        method: str,
        args: Sequence[Any],
        kwargs: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Run execute_kw on the object endpoint."""
        uid = await self.authenticate()

        return await self._rpc(
            OBJECT_ENDPOINT,
            "execute_kw",
            (self.db, uid, self.api_key, model, method, list(args), kwargs or {}),
            rpc_method=f"{model}.{method}",
            timeout=timeout,
        )

    async def search_read(
        self,
        model: str,
        domain: list,
        fields: list[str] | None = None,
        *,
        limit: int,
        offset: int = 0,
        order: str = "id asc",
        context: dict | None = None,
        timeout: float | None = None,
    ) -> list[dict]:
        """
        Search and read records.

        limit has no default; pass it explicitly.
        """
        kwargs: dict[str, Any] = {
            "fields": list(fields or []),
            "offset": offset,
            "limit": limit,
            "order": order,
        }
        if context:
            kwargs["context"] = context

        records = await self.execute_kw(model, "search_read", [domain], kwargs, timeout=timeout)
        if not isinstance(records, list):
            raise OdooDecodeError(
                f"search_read on {model} returned {type(records).__name__}, expected a list",
                endpoint=OBJECT_ENDPOINT,
                rpc_method=f"{model}.search_read",
            )
        if not all(isinstance(record, dict) for record in records):
            raise OdooDecodeError(
                f"search_read on {model} returned a list with non-struct items, expected records",
                endpoint=OBJECT_ENDPOINT,
                rpc_method=f"{model}.search_read",
            )
        return records

    async def search_count(
        self,
        model: str,
        domain: list,
        *,
        context: dict | None = None,
        timeout: float | None = None,
    ) -> int:
        """Count matching records"""
        kwargs = {"context": context} if context else {}
        count = await self.execute_kw(model, "search_count", [domain], kwargs, timeout=timeout)
        if isinstance(count, bool) or not isinstance(count, int):
            raise OdooDecodeError(
                f"search_count on {model} returned {type(count).__name__}, expected an integer",
                endpoint=OBJECT_ENDPOINT,
                rpc_method=f"{model}.search_count",
            )
        return count

    async def write(
        self,
        model: str,
        ids: list[int],
        values: dict,
        *,
        context: dict | None = None,
        timeout: float | None = None,
    ) -> WriteResult:
        """
        Update records.

        Returns WriteResult(success=False) when Odoo answers False.
        """
        kwargs = {"context": context} if context else {}
        result = await self.execute_kw(model, "write", [ids, values], kwargs, timeout=timeout)
        if not isinstance(result, bool):
            raise OdooDecodeError(
                f"write on {model} returned {type(result).__name__}, expected a boolean",
                endpoint=OBJECT_ENDPOINT,
                rpc_method=f"{model}.write",
            )

        if not result:
            logger.warning(f"Odoo write on {model} {list(ids)} returned False")
        return WriteResult(success=result, model=model, ids=tuple(ids))

    async def call(
        self,
        model: str,
        method: str,
        args: list | None = None,
        kwargs: dict | None = None,
        *,
        context: dict | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Call an arbitrary model method"""
        kwargs = dict(kwargs or {})
        if context:
            kwargs["context"] = context

        return await self.execute_kw(model, method, args or [], kwargs, timeout=timeout)

    async def check_connection(self) -> ConnectionStatus:
        """Authenticate and report the outcome instead of raising."""
        try:
            uid = await self.authenticate()
        except OdooError as e:
            logger.warning(f"Odoo connection check failed: {e}")
            return ConnectionStatus(ok=False, error=e.message, error_code=e.error_code)
        return ConnectionStatus(ok=True, uid=uid)

    async def close(self):
        """Release the HTTP client if this instance owns it"""
        await self._transport.close()

    async def __aenter__(self) -> "OdooClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
