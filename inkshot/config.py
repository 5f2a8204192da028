"""Configuration for the inkshot server.

Settings come from a YAML file, then environment variables override the
connection settings so the server can run as a Home Assistant add-on.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yaml"

DEFAULT_CONFIG = {
    'port': 5001,
    'data_path': '/data',
    'ha_url': 'http://homeassistant.local:8123',
    'ha_token': '',
    'log_level': 'info',
    'capture': {
        'timeout': 30,
        'settle_delay': 1.0,
        'image_quality': 90,
        'max_concurrent': 3,
        'bit_depth': 1,
    },
    'retention': {
        'auto': False,
        'max_age_hours': 24,
        'max_count': 50,
    },
    'scheduler': {
        'enabled': True,
        'poll_interval': 30,
    },
}

# Home Assistant add-on levels mapped onto the ones logging and uvicorn accept
LOG_LEVELS = {
    'trace': 'debug',
    'debug': 'debug',
    'info': 'info',
    'notice': 'info',
    'warning': 'warning',
    'warn': 'warning',
    'error': 'error',
    'fatal': 'critical',
    'critical': 'critical',
}


class Config:
    """Configuration manager for inkshot"""

    def __init__(self, config_path: str = CONFIG_FILE, environ: Optional[Mapping[str, str]] = None):
        self.config_path = config_path
        self.load_config()
        self.apply_environment(os.environ if environ is None else environ)

    def apply(self, data: dict):
        """Set attributes from ``data`` layered over DEFAULT_CONFIG"""
        sections = {}
        for section in ('capture', 'retention', 'scheduler'):
            sections[section] = {**DEFAULT_CONFIG[section], **(data.get(section) or {})}
        data = {**DEFAULT_CONFIG, **data}
        capture, retention, scheduler = sections['capture'], sections['retention'], sections['scheduler']

        self.port = int(data['port'])
        self.data_path = Path(data['data_path'])
        self.ha_url = data['ha_url']
        self.ha_token = data['ha_token'] or ''
        self.log_level = str(data['log_level'])

        self.capture_timeout = float(capture['timeout'])
        self.settle_delay = float(capture['settle_delay'])
        self.image_quality = int(capture['image_quality'])
        self.max_concurrent = int(capture['max_concurrent'])
        self.bit_depth = int(capture['bit_depth'])

        self.retention_auto = bool(retention['auto'])
        self.retention_max_age_hours = float(retention['max_age_hours'])
        self.retention_max_count = int(retention['max_count'])

        self.scheduler_enabled = bool(scheduler['enabled'])
        self.poll_interval = float(scheduler['poll_interval'])

    def load_config(self):
        """Load configuration from YAML file"""
        if not Path(self.config_path).exists():
            logger.info(f"No config file at {self.config_path}, using defaults")
            self.apply({})
            return

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("top level must be a mapping")
            self.apply(data)
            logger.info(f"Loaded config from {self.config_path}: data_path={self.data_path}, "
                        f"max_concurrent={self.max_concurrent}, scheduler={self.scheduler_enabled}")
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            sys.exit(1)

    def apply_environment(self, environ: Mapping[str, str]):
        """Environment variables used by the add-on container take precedence"""
        if environ.get('PORT'):
            self.port = int(environ['PORT'])
        if environ.get('DATA_PATH'):
            self.data_path = Path(environ['DATA_PATH'])
        if environ.get('HA_URL'):
            self.ha_url = environ['HA_URL']
        token = environ.get('SUPERVISOR_TOKEN') or environ.get('HA_TOKEN')
        if token:
            self.ha_token = token
        if environ.get('LOG_LEVEL'):
            self.log_level = environ['LOG_LEVEL']
        if environ.get('MAX_CONCURRENT'):
            self.max_concurrent = int(environ['MAX_CONCURRENT'])

    @property
    def logging_level(self) -> str:
        """Lower-case level name understood by both logging and uvicorn, 'info' if unknown"""
        level = LOG_LEVELS.get(self.log_level.strip().lower())
        if level is None:
            logger.warning(f"Unknown log level '{self.log_level}', using info")
            return 'info'
        return level

    @property
    def screenshot_path(self) -> Path:
        return self.data_path / 'screenshots'

    @property
    def profiles_path(self) -> Path:
        return self.data_path / 'profiles.json'

    @property
    def retention(self) -> dict:
        return {'max_age_hours': self.retention_max_age_hours, 'max_count': self.retention_max_count}


def write_default_config(path: str = CONFIG_FILE):
    with open(path, 'w') as f:
        yaml.dump(DEFAULT_CONFIG, f, default_flow_style=False)
    logger.info(f"Created default config file: {path}")
