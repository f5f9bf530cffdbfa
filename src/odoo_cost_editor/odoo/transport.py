"""HTTP transport for Odoo's XML-RPC endpoints."""

import httpx

from .exceptions import OdooTransportError, map_connection_error

COMMON_ENDPOINT = "common"
OBJECT_ENDPOINT = "object"

XMLRPC_HEADERS = {
    "Content-Type": "text/xml",
    "Accept": "text/xml",
    "User-Agent": "odoo-cost-editor",
}


class XmlRpcTransport:
    """
    Posts XML-RPC documents to {base_url}/xmlrpc/2/<endpoint>.

    One request per call, no retries. The httpx client is closed on
    close() only when this transport created it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}/xmlrpc/2/{endpoint}"

    async def post(self, endpoint: str, body: str, *, timeout: float | None = None) -> bytes:
        """Send one XML-RPC document and return the raw response body."""
        url = self.endpoint_url(endpoint)
        try:
            response = await self._http.post(
                url,
                content=body.encode("utf-8"),
                headers=XMLRPC_HEADERS,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as e:
            raise map_connection_error(e) from e

        if not response.is_success:
            raise OdooTransportError(
                f"HTTP {response.status_code} {response.reason_phrase} from {url}",
                status_code=response.status_code,
            )

        return response.content

    async def close(self):
        if self._owns_client:
            await self._http.aclose()
