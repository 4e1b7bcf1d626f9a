from .transport import accept_one, connect, listener_address, open_listener, receive_message, send_message

__all__ = [
    "accept_one",
    "connect",
    "listener_address",
    "open_listener",
    "receive_message",
    "send_message",
]
