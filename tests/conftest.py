"""
Pytest Fixtures for Odoo Cost Editor Tests

Provides a scripted Odoo XML-RPC server (via httpx.MockTransport)
and clients wired to it.
"""

import xmlrpc.client
from typing import Any, AsyncGenerator

import httpx
import pytest

ODOO_URL = "https://odoo.test"
ODOO_DB = "conforama"
ODOO_USER = "costos@example.com"
ODOO_API_KEY = "test-api-key"


def response_xml(value: Any) -> str:
    """Render a methodResponse with the stdlib marshaller."""
    return xmlrpc.client.dumps((value,), methodresponse=True, allow_none=True)


def fault_xml(code: int, message: str) -> str:
    return xmlrpc.client.dumps(xmlrpc.client.Fault(code, message))


class StubOdoo:
    """
    Scripted Odoo endpoint.

    Replies are registered per RPC key: "authenticate" / "version" for the
    common endpoint and "<model>.<method>" for execute_kw calls. A reply
    may be a value, an httpx.Response, an exception to raise, or a
    callable receiving the decoded params.
    """

    def __init__(self):
        self.calls: list[tuple[str, str, tuple]] = []
        self._replies: dict[str, Any] = {}

    def on(self, key: str, reply: Any) -> "StubOdoo":
        self._replies[key] = reply
        return self

    def calls_to(self, key: str) -> list[tuple]:
        return [params for _, called, params in self.calls if called == key]

    def handler(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        params, method = xmlrpc.client.loads(request.content)
        key = f"{params[3]}.{params[4]}" if method == "execute_kw" else method
        self.calls.append((endpoint, key, params))

        if key not in self._replies:
            return httpx.Response(200, text=fault_xml(1, f"UserError: no stub for {key}"))

        reply = self._replies[key]
        if callable(reply) and not isinstance(reply, type):
            reply = reply(params)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, text=response_xml(reply), headers={"Content-Type": "text/xml"})


@pytest.fixture
def stub_odoo() -> StubOdoo:
    stub = StubOdoo()
    stub.on("authenticate", 42)
    return stub


@pytest.fixture
async def http_client(stub_odoo) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Provide async HTTP client routed to the stub server."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(stub_odoo.handler)) as client:
        yield client


@pytest.fixture
def odoo_client(http_client):
    """Create an OdooClient talking to the stub server."""
    from odoo_cost_editor.odoo.client import OdooClient

    return OdooClient(
        url=ODOO_URL,
        db=ODOO_DB,
        user=ODOO_USER,
        api_key=ODOO_API_KEY,
        http_client=http_client,
    )


@pytest.fixture
def catalog(odoo_client):
    from odoo_cost_editor.catalog import ProductCatalog

    return ProductCatalog(odoo_client)
