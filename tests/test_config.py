# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import json

import pytest

from hdhomerun_client import HdhrError, HdhrClientConfig
from hdhomerun_client.constants import DEFAULT_PORT, DEFAULT_TIMEOUT, CONNECT_TIMEOUT, DISCOVERY_WAIT_TIME

@pytest.fixture
def clean_env(monkeypatch):
    for name in ('HDHOMERUN_HOST', 'HDHOMERUN_PORT', 'HDHOMERUN_TIMEOUT', 'HDHOMERUN_CONFIG_FILE'):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch

def test_defaults(clean_env):
    config = HdhrClientConfig()
    assert config.default_host is None
    assert config.default_port == DEFAULT_PORT
    assert config.timeout_secs == DEFAULT_TIMEOUT
    assert config.connect_timeout_secs == CONNECT_TIMEOUT
    assert config.discovery_wait_secs == DISCOVERY_WAIT_TIME

def test_environment(clean_env):
    clean_env.setenv('HDHOMERUN_HOST', '10.0.0.9')
    clean_env.setenv('HDHOMERUN_PORT', '1234')
    clean_env.setenv('HDHOMERUN_TIMEOUT', '0')
    config = HdhrClientConfig()
    assert config.default_host == '10.0.0.9'
    assert config.default_port == 1234
    assert config.timeout_secs == 0

def test_arguments_override_environment(clean_env):
    clean_env.setenv('HDHOMERUN_HOST', '10.0.0.9')
    config = HdhrClientConfig('10.0.0.10', default_port=99, timeout_secs=3.0)
    assert config.default_host == '10.0.0.10'
    assert config.default_port == 99
    assert config.timeout_secs == 3.0

def test_invalid_environment(clean_env):
    clean_env.setenv('HDHOMERUN_PORT', 'abc')
    with pytest.raises(HdhrError):
        HdhrClientConfig()

def test_config_file(clean_env, tmp_path):
    config_file = tmp_path / "hdhomerun.json"
    config_file.write_text(json.dumps(dict(default_host="discover://", timeout_secs=2.5)))
    clean_env.setenv('HDHOMERUN_CONFIG_FILE', str(config_file))
    config = HdhrClientConfig()
    assert config.default_host == "discover://"
    assert config.timeout_secs == 2.5
    assert HdhrClientConfig(use_config_file=False).default_host is None

def test_base_config(clean_env):
    base = HdhrClientConfig('10.0.0.1', timeout_secs=4.0)
    config = HdhrClientConfig(default_port=1000, base_config=base)
    assert config.default_host == '10.0.0.1'
    assert config.default_port == 1000
    assert config.timeout_secs == 4.0

def test_json_round_trip(clean_env):
    config = HdhrClientConfig('10.0.0.1', default_port=1000)
    copy = HdhrClientConfig.from_json(config.to_json(), use_config_file=False)
    assert copy.to_jsonable() == config.to_jsonable()
