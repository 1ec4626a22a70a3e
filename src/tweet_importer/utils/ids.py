"""Time-sortable identifiers."""

import os
import time
import uuid


def uuid7() -> uuid.UUID:
    """
    Generate a version 7 UUID.

    48 bits of Unix milliseconds followed by random bits, so ids sort by
    creation time. Qdrant accepts UUIDs as point ids.
    """
    timestamp_ms = time.time_ns() // 1_000_000
    rand = int.from_bytes(os.urandom(10), "big")

    value = (timestamp_ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76                          # version
    value |= ((rand >> 62) & 0xFFF) << 64       # rand_a, 12 bits
    value |= 0b10 << 62                         # RFC 4122 variant
    value |= rand & ((1 << 62) - 1)             # rand_b, 62 bits
    return uuid.UUID(int=value)


def new_id() -> str:
    return str(uuid7())
