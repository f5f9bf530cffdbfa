"""
Odoo Error Handling

Typed errors for every way an Odoo XML-RPC call can fail.
Each error knows its error code and can render itself as a JSON body.

Taxonomy:
- OdooConfigurationError: missing connection parameters (no network used)
- OdooEncodeError: value has no XML-RPC representation
- OdooTransportError: HTTP-level failure (status, refused, timeout)
- OdooProtocolFault: remote XML-RPC fault, the HTTP call itself succeeded
- OdooDecodeError: response body is not a recognizable XML-RPC document
- OdooAuthenticationError: authenticate answered without a valid uid

Fault Code Reference (Odoo XML-RPC):
- Fault 1: UserError / ValidationError
- Fault 2: MissingError (record not found)
- Fault 3: AccessDenied (authentication)
- Fault 4: AccessError (permission denied)
"""

import socket
from typing import Any
from xmlrpc.client import Fault  # nosec B411 - only used to read fault code/string

import httpx


class OdooError(Exception):
    """Base exception for all Odoo-related errors."""

    error_code: str = "ODOO_ERROR"
    is_retryable: bool = False

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message)
        self.message = message
        self.details = kwargs

    def annotate(self, **context: Any) -> "OdooError":
        """Attach call context (endpoint, rpc_method) without overwriting."""
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self

    def to_response(self) -> dict:
        """Convert error to a JSON-friendly response body."""
        response = {
            "error": {
                "code": self.error_code,
                "message": self.message,
            }
        }
        for key, value in self.details.items():
            response["error"][key] = value
        return response

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class OdooConfigurationError(OdooError):
    """Connection parameters are missing or invalid."""

    error_code = "CONFIGURATION_ERROR"


class OdooEncodeError(OdooError):
    """A value cannot be represented in XML-RPC."""

    error_code = "ENCODE_ERROR"


class OdooTransportError(OdooError):
    """HTTP-level failure talking to Odoo."""

    error_code = "TRANSPORT_ERROR"
    is_retryable = True

    def __init__(self, message: str, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.details["status_code"] = status_code


class OdooConnectionError(OdooTransportError):
    """Could not reach the Odoo server."""

    error_code = "CONNECTION_ERROR"


class OdooTimeoutError(OdooTransportError):
    """Request timed out."""

    error_code = "CONNECTION_TIMEOUT"


class OdooProtocolFault(OdooError):
    """Odoo answered with an XML-RPC fault."""

    error_code = "PROTOCOL_FAULT"

    def __init__(
        self,
        message: str,
        fault_code: int | str | None = None,
        fault_string: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.fault_code = fault_code
        self.fault_string = fault_string if fault_string is not None else message
        self.details["fault_code"] = fault_code


class OdooUserErrorFault(OdooProtocolFault):
    """UserError / ValidationError raised by the model."""

    error_code = "VALIDATION_ERROR"


class OdooMissingRecordFault(OdooProtocolFault):
    """Requested record does not exist."""

    error_code = "RECORD_NOT_FOUND"


class OdooAccessDeniedFault(OdooProtocolFault):
    """Credentials were rejected by the server."""

    error_code = "ACCESS_DENIED"


class OdooAccessRightsFault(OdooProtocolFault):
    """User lacks permission to access/modify the resource."""

    error_code = "PERMISSION_DENIED"


class OdooDecodeError(OdooError):
    """Response body did not match any XML-RPC shape."""

    error_code = "DECODE_ERROR"

    SNIPPET_LENGTH = 500

    def __init__(self, message: str, payload: bytes | str | None = None, **kwargs: Any):
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        snippet = payload[: self.SNIPPET_LENGTH] if payload is not None else None
        super().__init__(message, **kwargs)
        self.payload = snippet
        if snippet is not None:
            self.details["payload"] = snippet


class OdooAuthenticationError(OdooError):
    """authenticate returned no usable uid."""

    error_code = "AUTHENTICATION_FAILED"


def map_odoo_fault(fault: Fault) -> OdooProtocolFault:
    """
    Map an XML-RPC Fault to the matching OdooProtocolFault subclass.

    Args:
        fault: Fault decoded from an Odoo response

    Returns:
        OdooProtocolFault subclass carrying the clean message
    """
    fault_code = fault.faultCode
    fault_string = fault.faultString or ""

    message = _extract_error_message(fault_string)
    kwargs = {"fault_code": fault_code, "fault_string": fault_string}

    if fault_code == 3 or fault_string.startswith("Access Denied") or "AccessDenied" in fault_string:
        return OdooAccessDeniedFault(message, **kwargs)

    if fault_code == 4 or "AccessError" in fault_string:
        return OdooAccessRightsFault(message, **kwargs)

    if fault_code == 2 or "MissingError" in fault_string:
        return OdooMissingRecordFault(message, **kwargs)

    if fault_code == 1 or "UserError" in fault_string or "ValidationError" in fault_string:
        return OdooUserErrorFault(message, **kwargs)

    return OdooProtocolFault(message, **kwargs)


def map_connection_error(error: Exception) -> OdooTransportError:
    """
    Map httpx/network errors to the matching OdooTransportError.

    Args:
        error: Original exception (httpx.TimeoutException, httpx.ConnectError, ...)

    Returns:
        OdooTransportError subclass
    """
    if isinstance(error, (httpx.TimeoutException, socket.timeout, TimeoutError)):
        return OdooTimeoutError(
            f"Connection timed out: {error}",
            original_error=str(error),
        )

    if isinstance(error, (httpx.ConnectError, ConnectionRefusedError)):
        return OdooConnectionError(
            "Connection refused - Odoo server may be down",
            original_error=str(error),
        )

    return OdooTransportError(
        f"Network error: {error}",
        original_error=str(error),
    )


def _extract_error_message(fault_string: str) -> str:
    """
    Extract clean error message from an Odoo fault string.

    Odoo fault strings often carry a Python traceback; keep only the
    meaningful line.
    """
    for prefix in ["UserError:", "ValidationError:", "MissingError:", "AccessError:", "AccessDenied:"]:
        if prefix in fault_string:
            parts = fault_string.split(prefix, 1)
            if len(parts) > 1:
                return parts[1].strip().split("\n")[0].strip()

    first_line = fault_string.split("\n")[0].strip()

    noise_prefixes = ["Traceback ", "File ", "  "]
    for prefix in noise_prefixes:
        if first_line.startswith(prefix):
            lines = fault_string.split("\n")
            for line in reversed(lines):
                line = line.strip()
                if line and not any(line.startswith(p) for p in noise_prefixes):
                    return line
            break

    return first_line or fault_string
