"""
XML-RPC Codec

Converts native Python values to XML-RPC markup and Odoo responses back
to native values. Pure functions: no I/O, no state.

Encoding rules:
- str                -> <string>, with &, <, > and CR escaped; characters
                        XML 1.0 forbids are rejected
- bool               -> <boolean>0|1</boolean>
- int/float/Decimal  -> <int> when mathematically integral, else <double>
                        (5.0 is sent as <int>5</int>)
- list/tuple         -> <array><data>...</data></array>
- Mapping            -> <struct>, members in insertion order
- None               -> rejected, XML-RPC has no null without extensions
- anything else      -> <string> of str(value)

Decoding is built on the xmlrpc.client unmarshaller, which tolerates
pretty-printed documents and unescapes entities, so string round trips
are lossless.
"""

import math
import numbers
import re
import xmlrpc.client  # nosec B411 - parses responses from the configured Odoo server only
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Sequence
from xml.parsers.expat import ExpatError

from .exceptions import OdooDecodeError, OdooEncodeError, map_odoo_fault

# Characters XML 1.0 does not allow in a document, even as references
_XML_ILLEGAL = re.compile("[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def escape(text: str) -> str:
    """Escape text for element content; \\r is kept as a character reference."""
    illegal = _XML_ILLEGAL.search(text)
    if illegal:
        raise OdooEncodeError(
            f"Character {illegal.group()!r} at position {illegal.start()} is not allowed in XML",
            position=illegal.start(),
        )
    return xmlrpc.client.escape(text).replace("\r", "&#13;")


def encode_value(value: Any) -> str:
    """Encode a value as its XML-RPC type tag (without the <value> wrapper)."""
    if value is None:
        raise OdooEncodeError(
            "None has no XML-RPC representation; send False or omit the field",
        )

    if isinstance(value, str):
        return f"<string>{escape(value)}</string>"

    # bool is an int subclass, so it must be checked first
    if isinstance(value, bool):
        return f"<boolean>{int(value)}</boolean>"

    if isinstance(value, (numbers.Real, Decimal)):
        return _encode_number(value)

    if isinstance(value, (list, tuple)):
        items = "".join(f"<value>{encode_value(item)}</value>" for item in value)
        return f"<array><data>{items}</data></array>"

    if isinstance(value, Mapping):
        members = "".join(
            f"<member><name>{escape(str(key))}</name>"
            f"<value>{encode_value(item)}</value></member>"
            for key, item in value.items()
        )
        return f"<struct>{members}</struct>"

    return f"<string>{escape(str(value))}</string>"


def _encode_number(value: numbers.Real | Decimal) -> str:
    if isinstance(value, int):
        return f"<int>{value}</int>"

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise OdooEncodeError(f"Cannot encode non-finite number {value}")
        if value == value.to_integral_value():
            return f"<int>{int(value)}</int>"
        return f"<double>{value:f}</double>"

    number = float(value)
    if not math.isfinite(number):
        raise OdooEncodeError(f"Cannot encode non-finite number {value!r}")
    if number.is_integer():
        return f"<int>{int(number)}</int>"
    return f"<double>{number!r}</double>"


def encode_call(method: str, params: Sequence[Any]) -> str:
    """Render a complete methodCall document."""
    body = "".join(f"<param><value>{encode_value(param)}</value></param>" for param in params)
    return (
        '<?xml version="1.0"?>\n'
        "<methodCall>\n"
        f"<methodName>{escape(method)}</methodName>\n"
        f"<params>{body}</params>\n"
        "</methodCall>\n"
    )


class _ResponseUnmarshaller(xmlrpc.client.Unmarshaller):
    """Unmarshaller that reads faults without requiring a faultCode member."""

    def close(self):
        if self._type == "fault" and not self._marks and self._stack:
            fault = self._stack[0]
            if isinstance(fault, dict) and "faultString" in fault:
                raise xmlrpc.client.Fault(fault.get("faultCode", 0), str(fault["faultString"]))
        return super().close()


def decode_response(payload: bytes | str) -> Any:
    """
    Decode an XML-RPC methodResponse.

    Returns:
        The single response value

    Raises:
        OdooProtocolFault: document is a fault response
        OdooDecodeError: document is not a well-formed methodResponse
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    unmarshaller = _ResponseUnmarshaller(use_builtin_types=True)
    parser = xmlrpc.client.ExpatParser(unmarshaller)
    try:
        parser.feed(payload)
        parser.close()
        values = unmarshaller.close()
    except xmlrpc.client.Fault as fault:
        raise map_odoo_fault(fault) from fault
    except ExpatError as e:
        raise OdooDecodeError(f"Malformed XML in response: {e}", payload=payload) from e
    except xmlrpc.client.ResponseError as e:
        raise OdooDecodeError("Response is not an XML-RPC document", payload=payload) from e
    except (TypeError, ValueError, LookupError) as e:
        raise OdooDecodeError(f"Invalid XML-RPC value: {e}", payload=payload) from e

    if unmarshaller.getmethodname() is not None:
        raise OdooDecodeError("Expected methodResponse, got methodCall", payload=payload)

    if len(values) != 1:
        raise OdooDecodeError(
            f"Expected exactly one response value, got {len(values)}",
            payload=payload,
        )

    return values[0]


def decode_value(fragment: str) -> Any:
    """Decode a bare type-tag fragment as produced by encode_value."""
    return decode_response(
        "<methodResponse><params><param>"
        f"<value>{fragment}</value>"
        "</param></params></methodResponse>"
    )
