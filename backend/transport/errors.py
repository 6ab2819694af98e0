"""
Transport error taxonomy.
"""

from __future__ import annotations


class TransportError(Exception):
    """Base class for serial transport errors."""


class ConnectError(TransportError):
    """
    Raised when a serial device cannot be opened.

    Covers a missing device path, insufficient permissions and a port
    that is already claimed. Aborts the start attempt.
    """


class IoError(TransportError):
    """
    A single read or write failed, or was issued on a closed channel.

    Never fatal: delivered to the completion callback, logged there.
    """
