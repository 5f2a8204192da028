"""
Tests for YAML configuration loading and environment overrides.
"""

from pathlib import Path

import pytest
import yaml

from inkshot.config import DEFAULT_CONFIG, Config, write_default_config


def test_defaults_without_file(tmp_path):
    config = Config(str(tmp_path / 'missing.yaml'), environ={})

    assert config.port == 5001
    assert config.data_path == Path('/data')
    assert config.screenshot_path == Path('/data/screenshots')
    assert config.profiles_path == Path('/data/profiles.json')
    assert config.max_concurrent == 3
    assert config.capture_timeout == 30
    assert config.settle_delay == 1.0
    assert config.image_quality == 90
    assert config.bit_depth == 1
    assert config.retention == {'max_age_hours': 24, 'max_count': 50}
    assert config.scheduler_enabled is True


def test_yaml_values_override_defaults(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.dump({
        'data_path': str(tmp_path / 'data'),
        'capture': {'max_concurrent': 5, 'bit_depth': 2},
        'scheduler': {'enabled': False},
    }))

    config = Config(str(path), environ={})

    assert config.data_path == tmp_path / 'data'
    assert config.max_concurrent == 5
    assert config.bit_depth == 2
    assert config.capture_timeout == 30
    assert config.scheduler_enabled is False
    assert config.poll_interval == 30


def test_environment_overrides(tmp_path):
    config = Config(str(tmp_path / 'missing.yaml'), environ={
        'PORT': '8080',
        'DATA_PATH': '/srv/inkshot',
        'HA_URL': 'http://ha:8123',
        'HA_TOKEN': 'fallback',
        'SUPERVISOR_TOKEN': 'supervisor',
        'MAX_CONCURRENT': '1',
    })

    assert config.port == 8080
    assert config.data_path == Path('/srv/inkshot')
    assert config.ha_url == 'http://ha:8123'
    assert config.ha_token == 'supervisor'
    assert config.max_concurrent == 1


def test_invalid_yaml_exits(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text("capture: [unclosed")

    with pytest.raises(SystemExit):
        Config(str(path), environ={})


def test_write_default_config(tmp_path):
    path = tmp_path / 'config.yaml'
    write_default_config(str(path))

    assert yaml.safe_load(path.read_text()) == DEFAULT_CONFIG


@pytest.mark.parametrize("level, expected", [
    ('info', 'info'),
    ('DEBUG', 'debug'),
    ('trace', 'debug'),
    ('notice', 'info'),
    ('warn', 'warning'),
    ('fatal', 'critical'),
    ('verbose', 'info'),
])
def test_log_level_mapping(tmp_path, level, expected):
    config = Config(str(tmp_path / 'missing.yaml'), environ={'LOG_LEVEL': level})

    assert config.logging_level == expected
