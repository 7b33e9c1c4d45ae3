# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
General utility functions
"""
from __future__ import annotations

from .internal_types import *

def full_name_of_class(cls: Type[object]) -> str:
    """Return the full name of a class, including the module name."""
    module = cls.__module__
    if module == 'builtins':
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"

def full_class_name(o: object) -> str:
    """Return the full name of an object's class, including the module name."""
    return full_name_of_class(o.__class__)

def null_terminated(s: Union[str, bytes]) -> bytes:
    """Returns the UTF-8 encoding of s with a single null terminator appended,
       as used by get/set names and values on the wire."""
    if isinstance(s, str):
        s = s.encode('utf-8')
    return s + b'\x00'

def strip_null(b: bytes) -> str:
    """Returns the contents of b as a str, with one trailing null terminator removed."""
    if b.endswith(b'\x00'):
        b = b[:-1]
    return b.decode('utf-8', errors='replace')
