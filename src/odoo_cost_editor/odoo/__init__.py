"""Odoo XML-RPC codec, client and errors."""

from .client import ConnectionStatus, OdooClient, WriteResult
from .codec import decode_response, decode_value, encode_call, encode_value
from .exceptions import (
    OdooAccessDeniedFault,
    OdooAccessRightsFault,
    OdooAuthenticationError,
    OdooConfigurationError,
    OdooConnectionError,
    OdooDecodeError,
    OdooEncodeError,
    OdooError,
    OdooMissingRecordFault,
    OdooProtocolFault,
    OdooTimeoutError,
    OdooTransportError,
    OdooUserErrorFault,
    map_connection_error,
    map_odoo_fault,
)

__all__ = [
    "OdooClient",
    "WriteResult",
    "ConnectionStatus",
    # Codec
    "encode_value",
    "encode_call",
    "decode_response",
    "decode_value",
    # Exceptions
    "OdooError",
    "OdooConfigurationError",
    "OdooEncodeError",
    "OdooTransportError",
    "OdooConnectionError",
    "OdooTimeoutError",
    "OdooProtocolFault",
    "OdooUserErrorFault",
    "OdooMissingRecordFault",
    "OdooAccessDeniedFault",
    "OdooAccessRightsFault",
    "OdooDecodeError",
    "OdooAuthenticationError",
    # Utilities
    "map_connection_error",
    "map_odoo_fault",
]
