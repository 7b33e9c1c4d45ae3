# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used internally by this package"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Coroutine,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    Union,
    cast,
  )

from types import TracebackType

from typing_extensions import TypeAlias

Jsonable: TypeAlias = Union[
    str, int, float, bool, None,
    Dict[str, 'Jsonable'],
    List['Jsonable'],
  ]
"""A type hint for a value that can be serialized to JSON."""

JsonableDict: TypeAlias = Dict[str, Jsonable]
"""A type hint for a JSON object."""

HostAndPort: TypeAlias = Tuple[str, int]
"""A (host, port) tuple as used by socket addresses."""

__all__ = [
    'TYPE_CHECKING',
    'Any',
    'AsyncContextManager',
    'AsyncIterable',
    'AsyncIterator',
    'Awaitable',
    'Callable',
    'Coroutine',
    'Dict',
    'Iterable',
    'List',
    'Mapping',
    'Optional',
    'Sequence',
    'Set',
    'Tuple',
    'Type',
    'Union',
    'cast',
    'TracebackType',
    'Jsonable',
    'JsonableDict',
    'HostAndPort',
  ]
