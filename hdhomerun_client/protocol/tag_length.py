# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Variable tag length encoding.

A tag's data length is encoded in one byte if it is less than 128, and
otherwise in two bytes, with the high bit of the first byte set:

    byte0 = 0x80 | (length & 0x7f)
    byte1 = length >> 7

Both helpers operate on a buffer that must be exactly two bytes long, even when
only one byte is consumed.
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import HdhrTagLengthBufferError
from .constants import LARGE_TAG_LENGTH, MAX_TAG_LENGTH

def tag_length_size(n: int) -> int:
    """Returns the number of bytes needed to encode a tag data length of n."""
    return 1 if n < LARGE_TAG_LENGTH else 2

def write_tag_length(n: int, buf: Union[bytearray, memoryview]) -> int:
    """Writes n into buf using the variable tag length encoding.

    Returns the number of bytes of buf that were used.
    """
    if len(buf) != 2:
        raise HdhrTagLengthBufferError()
    if n < 0 or n > MAX_TAG_LENGTH:
        raise HdhrTagLengthBufferError(f"tag length {n} cannot be encoded")

    if n < LARGE_TAG_LENGTH:
        buf[0] = n
        return 1

    buf[0] = 0x80 | (n & 0x7f)
    buf[1] = n >> 7
    return 2

def read_tag_length(buf: Union[bytes, bytearray, memoryview]) -> Tuple[int, int]:
    """Reads a length value from buf using the variable tag length encoding.

    Returns a tuple (length, consumed) where consumed is the number of bytes
    of buf used by the length value.
    """
    if len(buf) != 2:
        raise HdhrTagLengthBufferError()

    if buf[0] & 0x80 == 0:
        return (buf[0], 1)

    return ((buf[0] & 0x7f) | (buf[1] << 7), 2)
