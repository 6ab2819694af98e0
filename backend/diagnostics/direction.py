"""
Direction of a diagnosed serial transfer.
"""

from __future__ import annotations

from enum import Enum


class Direction(str, Enum):
    """
    Which way bytes travelled, from the device's point of view.

    The value is the marker printed at the start of a dump line.
    """

    READ = ">"
    WRITE = "<"
