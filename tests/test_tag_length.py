# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import pytest

from hdhomerun_client.exceptions import HdhrTagLengthBufferError
from hdhomerun_client.protocol import tag_length_size, write_tag_length, read_tag_length

@pytest.mark.parametrize("n,encoded", [
    (0, b'\x00'),
    (1, b'\x01'),
    (127, b'\x7f'),
    (128, b'\x80\x01'),
    (129, b'\x81\x01'),
    (255, b'\xff\x01'),
    (256, b'\x80\x02'),
    (0x7fff, b'\xff\xff'),
  ])
def test_write_and_read(n, encoded):
    buf = bytearray(2)
    used = write_tag_length(n, buf)
    assert used == len(encoded) == tag_length_size(n)
    assert bytes(buf[:used]) == encoded
    padded = encoded + b'\x00' * (2 - len(encoded))
    assert read_tag_length(padded) == (n, used)

@pytest.mark.parametrize("size", [0, 1, 3])
def test_buffer_must_be_two_bytes(size):
    with pytest.raises(HdhrTagLengthBufferError):
        write_tag_length(5, bytearray(size))
    with pytest.raises(HdhrTagLengthBufferError):
        read_tag_length(bytes(size))

def test_write_to_memoryview():
    buf = bytearray(4)
    used = write_tag_length(200, memoryview(buf)[1:3])
    assert used == 2
    assert buf == bytearray(b'\x00\xc8\x01\x00')
