"""Exception hierarchy shared by every ring component."""


class RingError(Exception):
    """Base class for failures that abort a node's run."""


class TransportError(RingError):
    """Connect, bind or accept failed."""


class FramingError(RingError):
    """The byte stream ended early or carried an inconsistent length prefix."""


class DecodingError(RingError):
    """Framed bytes could not be turned back into a key or ciphertext."""


class ProtocolViolation(RingError):
    """A node reached a state its role should never reach."""
