"""
Raw TCP delivery of finished byte streams (conventionally port 9100).

The stream is written verbatim: cut, beep and raster framing are already in
place, so nothing here adds or interprets printer commands.
"""

from __future__ import annotations

import logging

from escpos.exceptions import Error as EscposError
from escpos.printer import Network

from print_agent.core.errors import DeliveryError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9100


def _connect_printer(host: str, port: int, timeout: float) -> Network:
    p = Network(host, port=port, timeout=timeout)
    p.open()
    return p


def send_raw(data: bytes, host: str, port: int = DEFAULT_PORT, timeout: float = 10.0) -> int:
    """
    Write `data` to the printer at host:port and close the connection.

    Returns the number of bytes sent. Raises DeliveryError on connection or write failure.
    """
    if not host:
        raise DeliveryError("Printer host is empty")
    logger.info("Sending %d bytes to printer at %s:%d", len(data), host, port)
    try:
        p = _connect_printer(host, port, timeout)
    except (OSError, EscposError) as e:
        raise DeliveryError(f"Could not connect to printer at {host}:{port}: {e}") from e
    try:
        p._raw(data)
    except (OSError, EscposError) as e:
        raise DeliveryError(f"Write to printer at {host}:{port} failed: {e}") from e
    finally:
        try:
            p.close()
        except (OSError, EscposError) as e:
            logger.debug("Printer close failed: %s", e)
    logger.info("Printer connection to %s:%d closed", host, port)
    return len(data)


__all__ = ["DEFAULT_PORT", "send_raw"]
