"""Blocking TCP transport: one connection per direction, one message per connection."""

from __future__ import annotations

import socket
from typing import Optional, Tuple

from homomorphic_ring.config import Address, ConnectPolicy, format_address
from homomorphic_ring.errors import TransportError
from homomorphic_ring.protocol import (
    DEFAULT_MAX_PAYLOAD_BYTES,
    KeyFraming,
    WireMessage,
    read_message,
    write_message,
)
from homomorphic_ring.utils import RetryError, get_logger, retry

logger = get_logger("transport")


def open_listener(address: Address, backlog: int = 1) -> socket.socket:
    """Bind and listen on address. The caller owns (and must close) the socket."""
    # IPv6 hosts arrive unbracketed from parse_address.
    family = socket.AF_INET6 if ":" in address[0] else socket.AF_INET
    try:
        return socket.create_server(address, family=family, backlog=backlog)
    except OSError as exc:
        raise TransportError(f"Cannot listen on {format_address(address)}: {exc}") from exc


def listener_address(listener: socket.socket) -> Address:
    host, port = listener.getsockname()[:2]
    return host, port


def accept_one(listener: socket.socket) -> Tuple[socket.socket, Address]:
    try:
        conn, peer = listener.accept()
    except OSError as exc:
        raise TransportError(f"Accept failed on {format_address(listener_address(listener))}: {exc}") from exc
    return conn, (peer[0], peer[1])


def connect(address: Address, policy: Optional[ConnectPolicy] = None) -> socket.socket:
    """
    Open an outbound connection, retrying refused or unreachable peers per policy.

    The timeout only bounds each connect attempt; the returned socket blocks.
    """
    policy = policy or ConnectPolicy()
    target = format_address(address)

    def _attempt() -> socket.socket:
        return socket.create_connection(address, timeout=policy.timeout_seconds)

    def _log_retry(attempt: int, exc: BaseException, delay: float) -> None:
        logger.warning(
            "Connect to %s failed (%s); retry %d/%d in %.2fs",
            target,
            exc,
            attempt,
            policy.retries,
            delay,
        )

    try:
        sock = retry(
            _attempt,
            retries=policy.retries,
            backoff=policy.backoff_seconds,
            exceptions=(OSError,),
            on_retry=_log_retry,
        )
    except RetryError as exc:
        raise TransportError(f"Cannot connect to {target}: {exc.last_error}") from exc
    sock.settimeout(None)
    return sock


def send_message(
    address: Address,
    message: WireMessage,
    framing: KeyFraming = KeyFraming.SELF_DELIMITING,
    policy: Optional[ConnectPolicy] = None,
) -> int:
    """Connect, write one message, close. Returns the bytes written."""
    logger.info("Connecting to %s", format_address(address))
    with connect(address, policy) as sock:
        try:
            with sock.makefile("wb") as stream:
                sent = write_message(stream, message, framing)
            sock.shutdown(socket.SHUT_WR)
        except OSError as exc:
            raise TransportError(f"Write to {format_address(address)} failed: {exc}") from exc
    return sent


def receive_message(
    listener: socket.socket,
    framing: KeyFraming = KeyFraming.SELF_DELIMITING,
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> Tuple[WireMessage, int, Address]:
    """
    Accept exactly one connection on listener and read one message to end-of-stream.

    Returns the message, the bytes read, and the peer address.
    """
    conn, peer = accept_one(listener)
    logger.info("Connection from %s", format_address(peer))
    with conn:
        try:
            with conn.makefile("rb") as stream:
                message, received = read_message(stream, framing, max_payload_bytes)
        except OSError as exc:
            raise TransportError(f"Read from {format_address(peer)} failed: {exc}") from exc
    return message, received, peer
