# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun client configuration.

Settings are layered, later layers winning:

  1. Package defaults
  2. A JSON file named by HDHOMERUN_CONFIG_FILE
  3. HDHOMERUN_HOST, HDHOMERUN_PORT and HDHOMERUN_TIMEOUT
  4. Explicit constructor arguments

A base_config replaces layers 1-3.
"""

from __future__ import annotations

import os
import json

from ..internal_types import *
from ..exceptions import HdhrError
from ..constants import (
    DEFAULT_TIMEOUT,
    DEFAULT_PORT,
    CONNECT_TIMEOUT,
    DISCOVERY_WAIT_TIME,
  )

_SETTINGS: List[Tuple[str, Callable[[Any], Any]]] = [
    ('default_host', str),
    ('default_port', int),
    ('timeout_secs', float),
    ('connect_timeout_secs', float),
    ('discovery_wait_secs', float),
  ]
"""(attribute name, converter) for every setting, in JSON order."""

_ENV_SETTINGS: List[Tuple[str, str, Callable[[str], Any]]] = [
    ('HDHOMERUN_HOST', 'default_host', str),
    ('HDHOMERUN_PORT', 'default_port', int),
    ('HDHOMERUN_TIMEOUT', 'timeout_secs', float),
  ]

def _is_unset(value: Any) -> bool:
    return value is None or value == ''

class HdhrClientConfig:
    """HDHomeRun client configuration."""
    default_host: Optional[str]
    """The device host; see resolve_device_tcp_host() for accepted forms."""
    default_port: int
    timeout_secs: float
    """Timeout for a request write plus reply read. 0 disables it."""
    connect_timeout_secs: float
    discovery_wait_secs: float
    """How long "discover://" hosts wait for discovery replies."""

    def __init__(
            self,
            default_host: Optional[str]=None,
            *,
            default_port: Optional[int]=None,
            timeout_secs: Optional[float]=None,
            connect_timeout_secs: Optional[float]=None,
            discovery_wait_secs: Optional[float]=None,
            base_config: Optional[HdhrClientConfig]=None,
            use_config_file: bool = True,
          ) -> None:
        """Creates a configuration for an HDHomeRun client.

           Args:
             default_host: The hostname or IP address of the device, optionally
                   prefixed with "tcp://" and suffixed with ":<port>", or
                   "discover://[<device-id>]". If None, HDHOMERUN_HOST is used.
             default_port: The TCP port used when the host has none. If None,
                   HDHOMERUN_PORT or 65001.
             timeout_secs: If None, HDHOMERUN_TIMEOUT or DEFAULT_TIMEOUT.
             connect_timeout_secs: If None, CONNECT_TIMEOUT.
             discovery_wait_secs: If None, DISCOVERY_WAIT_TIME.
             base_config: Copy settings from here instead of the defaults,
                   config file and environment.
             use_config_file: Whether to read HDHOMERUN_CONFIG_FILE when there
                   is no base_config.
        """
        if base_config is None:
            self.init_from_defaults(use_config_file=use_config_file)
        else:
            self.init_from_base_config(base_config)

        if not _is_unset(default_host):
            self.default_host = default_host
        if default_port is not None and default_port > 0:
            self.default_port = default_port
        if timeout_secs is not None:
            self.timeout_secs = timeout_secs
        if connect_timeout_secs is not None:
            self.connect_timeout_secs = connect_timeout_secs
        if discovery_wait_secs is not None:
            self.discovery_wait_secs = discovery_wait_secs

    def init_from_defaults(self, use_config_file: bool=True) -> None:
        """Loads package defaults, then the config file, then the environment."""
        self.default_host = None
        self.default_port = DEFAULT_PORT
        self.timeout_secs = DEFAULT_TIMEOUT
        self.connect_timeout_secs = CONNECT_TIMEOUT
        self.discovery_wait_secs = DISCOVERY_WAIT_TIME

        if use_config_file:
            config_file = os.environ.get('HDHOMERUN_CONFIG_FILE')
            if not _is_unset(config_file):
                with open(cast(str, config_file), 'r') as f:
                    self.update_from_jsonable(json.load(f))

        for env_name, attr, convert in _ENV_SETTINGS:
            env_value = os.environ.get(env_name)
            if _is_unset(env_value):
                continue
            try:
                setattr(self, attr, convert(cast(str, env_value)))
            except ValueError:
                raise HdhrError(f"Invalid {env_name} value: {env_value!r}") from None

    def init_from_base_config(self, base_config: HdhrClientConfig) -> None:
        for attr, _ in _SETTINGS:
            setattr(self, attr, getattr(base_config, attr))

    def to_jsonable(self) -> JsonableDict:
        return { attr: getattr(self, attr) for attr, _ in _SETTINGS }

    def to_json(self) -> str:
        return json.dumps(self.to_jsonable())

    def update_from_jsonable(self, jsonable: JsonableDict) -> None:
        """Overrides settings with those present (and non-empty) in a JSON object."""
        for attr, convert in _SETTINGS:
            value = jsonable.get(attr)
            if not _is_unset(value):
                setattr(self, attr, convert(value))

    @classmethod
    def from_jsonable(cls, jsonable: JsonableDict, use_config_file: bool=True) -> HdhrClientConfig:
        result = cls(use_config_file=use_config_file)
        result.update_from_jsonable(jsonable)
        return result

    @classmethod
    def from_json(cls, json_str: str, use_config_file: bool=True) -> HdhrClientConfig:
        return cls.from_jsonable(json.loads(json_str), use_config_file=use_config_file)

    @classmethod
    def from_config_file(cls, filename: str) -> HdhrClientConfig:
        """Creates a configuration from a JSON config file, ignoring HDHOMERUN_CONFIG_FILE."""
        with open(filename, 'r') as f:
            jsonable: JsonableDict = json.load(f)
        return cls.from_jsonable(jsonable, use_config_file=False)

    def __str__(self) -> str:
        return (
            f"HdhrClientConfig(default_host={self.default_host}, "
            f"default_port={self.default_port}, timeout_secs={self.timeout_secs!r})"
          )

    def __repr__(self) -> str:
        return str(self)
