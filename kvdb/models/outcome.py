"""
Typed results of store operations.
"""

from enum import IntEnum


class Outcome(IntEnum):
    """Result of a mutating store operation."""

    CREATED = 0
    UPDATED = 1
    DELETED = 2
    ALREADY_EXISTS = 3  # put_if_absent on a present key
    NOT_FOUND = 4  # delete on an absent key
