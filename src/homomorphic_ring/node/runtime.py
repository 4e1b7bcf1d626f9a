"""
Role-specific behaviour of a ring node.

A node moves through IDLE -> SENDING -> LISTENING -> DECIDING -> DONE. The
master starts at SENDING and ends in DECIDING; a relay stays in LISTENING
while it receives, folds and forwards. Any error lands in FAILED and is re-raised.
"""

from __future__ import annotations

import socket
from enum import Enum
from typing import Optional

from homomorphic_ring.communication import listener_address, open_listener, receive_message, send_message
from homomorphic_ring.config import Address, NodeConfig, NodeRole, format_address
from homomorphic_ring.crypto import DecryptionKey, EncryptionKey, decrypt, encrypt, generate_keypair
from homomorphic_ring.errors import ProtocolViolation
from homomorphic_ring.protocol import WireMessage, fold, initial_plaintext
from homomorphic_ring.utils import InMemoryMetrics, Timer, get_logger

logger = get_logger("node")


class NodeState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    LISTENING = "listening"
    DECIDING = "deciding"
    DONE = "done"
    FAILED = "failed"


STATE_CODES = {state: index for index, state in enumerate(NodeState)}


class RingNode:
    """Shared listener, transport and metrics plumbing for both roles."""

    role: NodeRole

    def __init__(
        self,
        config: NodeConfig,
        metrics=None,
        listener: Optional[socket.socket] = None,
    ) -> None:
        if config.role != self.role:
            raise ValueError(f"{type(self).__name__} cannot run a {config.role.value} config")
        self.config = config
        self.metrics = metrics if metrics is not None else InMemoryMetrics()
        self.state = NodeState.IDLE
        self._listener = listener

    @property
    def node_id(self) -> str:
        return self.config.node_id

    def bind(self) -> Address:
        """Open the listening endpoint if it is not open yet; returns its address."""
        if self._listener is None:
            self._listener = open_listener(self.config.listen)
        address = listener_address(self._listener)
        logger.info("[%s] Listening on %s", self.node_id, format_address(address))
        return address

    def close(self) -> None:
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def run(self) -> Optional[int]:
        """Run one protocol session. Always releases the listener."""
        try:
            return self._run()
        except Exception:
            self._transition(NodeState.FAILED)
            raise
        finally:
            self.close()

    def _run(self) -> Optional[int]:
        raise NotImplementedError

    def _transition(self, state: NodeState) -> None:
        logger.debug("[%s] %s -> %s", self.node_id, self.state.value, state.value)
        self.state = state
        self.metrics.emit_gauge("ring_state", STATE_CODES[state], role=self.role.value)

    def _send(self, message: WireMessage) -> None:
        with Timer(self.metrics, "ring_hop_seconds", role=self.role.value, direction="send"):
            sent = send_message(
                self.config.successor,
                message,
                framing=self.config.key_framing,
                policy=self.config.connect,
            )
        self.metrics.emit_counter("ring_bytes_sent", sent, role=self.role.value)
        self.metrics.emit_counter("ring_messages_sent", role=self.role.value)
        logger.info("[%s] Sent %d bytes to %s", self.node_id, sent, format_address(self.config.successor))

    def _receive(self) -> WireMessage:
        self.bind()
        self._transition(NodeState.LISTENING)
        with Timer(self.metrics, "ring_hop_seconds", role=self.role.value, direction="receive"):
            message, received, peer = receive_message(
                self._listener,
                framing=self.config.key_framing,
                max_payload_bytes=self.config.max_payload_bytes,
            )
        self.close()
        self.metrics.emit_counter("ring_bytes_received", received, role=self.role.value)
        self.metrics.emit_counter("ring_messages_received", role=self.role.value)
        logger.info("[%s] Received %d bytes from %s", self.node_id, received, format_address(peer))
        return message


class MasterNode(RingNode):
    """Starts the ring and is the only node that ever decrypts."""

    role = NodeRole.MASTER

    def __init__(self, config: NodeConfig, metrics=None, listener: Optional[socket.socket] = None) -> None:
        super().__init__(config, metrics, listener)
        self._encryption_key: Optional[EncryptionKey] = None
        self._decryption_key: Optional[DecryptionKey] = None
        self.result: Optional[int] = None

    def run(self) -> Optional[int]:
        try:
            return super().run()
        finally:
            self._decryption_key = None

    def _run(self) -> int:
        self._transition(NodeState.SENDING)
        # Listen before sending so a short ring cannot race back to a closed port.
        self.bind()
        keypair = generate_keypair(self.config.key_length)
        self._encryption_key = keypair.encryption_key
        self._decryption_key = keypair.decryption_key
        logger.info("[%s] Generated %d-bit Paillier key", self.node_id, self.config.key_length)
        ciphertext = encrypt(keypair.encryption_key, initial_plaintext(self.config.add, self.config.mul))
        self._send(WireMessage(encryption_key=keypair.encryption_key, ciphertext=ciphertext))

        message = self._receive()
        self._transition(NodeState.DECIDING)
        self.result = self._decide(message)
        self._transition(NodeState.DONE)
        return self.result

    def _decide(self, message: WireMessage) -> int:
        if self._decryption_key is None or self._encryption_key is None:
            raise ProtocolViolation(f"[{self.node_id}] Reached decryption without a decryption key")
        try:
            if message.encryption_key != self._encryption_key:
                raise ProtocolViolation(f"[{self.node_id}] Accumulator came back under a different key")
            with Timer(self.metrics, "ring_decrypt_seconds", role=self.role.value):
                result = decrypt(self._decryption_key, message.ciphertext)
        finally:
            self._decryption_key = None
        logger.info("[%s] Decrypted ring result", self.node_id)
        return result


class RelayNode(RingNode):
    """Folds its own terms into the accumulator and forwards it. Never decrypts."""

    role = NodeRole.RELAY

    def _run(self) -> None:
        message = self._receive()
        with Timer(self.metrics, "ring_fold_seconds", role=self.role.value):
            ciphertext = fold(message.encryption_key, message.ciphertext, self.config.add, self.config.mul)
        self._send(WireMessage(encryption_key=message.encryption_key, ciphertext=ciphertext))
        self._transition(NodeState.DONE)
        return None


def build_node(config: NodeConfig, metrics=None, listener: Optional[socket.socket] = None) -> RingNode:
    if config.role == NodeRole.MASTER:
        return MasterNode(config, metrics, listener)
    return RelayNode(config, metrics, listener)
