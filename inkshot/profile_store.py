"""Persistent capture profiles and their run history."""
import json
import logging
import os
import secrets
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import NotFound, ValidationError
from .models import (DEFAULT_HEIGHT, DEFAULT_WIDTH, OUTPUT_FORMATS, THEMES, Profile,
                     dimension_errors, is_number, isoformat, utc_now)
from .scheduler import due_profiles

logger = logging.getLogger(__name__)

PROFILES_FILE = 'profiles.json'

# Only these fields may change after creation; id, timestamps and run history may not
MUTABLE_FIELDS = (
    'name', 'url', 'width', 'height', 'theme',
    'refreshInterval', 'outputFormat', 'enabled', 'description',
)


def validate_profile(config: Dict[str, Any], partial: bool = False) -> List[str]:
    """Check profile fields and return every violation found.

    With ``partial`` set only the supplied fields are checked, as for an
    update; otherwise ``name`` and ``url`` are required. ``None`` values
    count as not supplied.
    """
    if not isinstance(config, dict):
        return ["Profile must be a JSON object"]

    errors = []

    if not partial or config.get('url') is not None:
        if not config.get('url') or not isinstance(config['url'], str):
            errors.append("URL is required and must be a string")

    if not partial or config.get('name') is not None:
        if not config.get('name') or not isinstance(config['name'], str):
            errors.append("Name is required and must be a string")

    for field in ('width', 'height'):
        if config.get(field) is not None:
            errors.extend(dimension_errors(field, config[field]))

    if config.get('theme') is not None and config['theme'] not in THEMES:
        errors.append('Theme must be either "light" or "dark"')

    interval = config.get('refreshInterval')
    if interval is not None and (not is_number(interval) or interval < 0):
        errors.append("Refresh interval must be a non-negative number")

    if config.get('outputFormat') is not None and config['outputFormat'] not in OUTPUT_FORMATS:
        errors.append(f"Output format must be one of: {', '.join(OUTPUT_FORMATS)}")

    if config.get('enabled') is not None and not isinstance(config['enabled'], bool):
        errors.append("Enabled must be true or false")

    if config.get('description') is not None and not isinstance(config['description'], str):
        errors.append("Description must be a string")

    return errors


class ProfileStore:
    """Named capture configurations persisted as one JSON document.

    Every mutation builds the new document, writes it, and only then makes
    it current; a failed write raises and leaves the store unchanged.
    Callers get copies of the stored records.
    """

    def __init__(self, path):
        self.path = Path(path)
        self.profiles: Dict[str, Profile] = {}

    def load(self):
        """Load profiles from disk, creating an empty document if there is none"""
        if not self.path.exists():
            self.profiles = {}
            self.save()
            return

        try:
            with open(self.path, 'r') as f:
                self.profiles = json.load(f)
            logger.info(f"Loaded {len(self.profiles)} profiles from {self.path}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load profiles from {self.path}: {e}")
            self.profiles = {}

    def save(self, profiles: Optional[Dict[str, Profile]] = None):
        """Write ``profiles`` (the current profiles by default) to disk"""
        if profiles is None:
            profiles = self.profiles
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        try:
            with open(tmp_path, 'w') as f:
                json.dump(profiles, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save profiles: {e}")
            raise

    def _commit(self, profiles: Dict[str, Profile]):
        self.save(profiles)
        self.profiles = profiles

    def _require(self, profile_id: str) -> Profile:
        profile = self.profiles.get(profile_id)
        if profile is None:
            raise NotFound(f"Profile not found: {profile_id}")
        return profile

    def create(self, config: Dict[str, Any]) -> Profile:
        errors = validate_profile(config)
        if errors:
            raise ValidationError(errors)

        profile_id = secrets.token_hex(8)
        now = isoformat(utc_now())

        def value(field, default):
            return default if config.get(field) is None else config[field]

        profile = {
            'id': profile_id,
            'name': config['name'],
            'url': config['url'],
            'width': value('width', DEFAULT_WIDTH),
            'height': value('height', DEFAULT_HEIGHT),
            'theme': value('theme', 'light'),
            'refreshInterval': value('refreshInterval', 0),
            'outputFormat': value('outputFormat', 'png'),
            'enabled': value('enabled', True),
            'description': value('description', ''),
            'created': now,
            'modified': now,
            'lastRun': None,
            'lastSuccess': None,
            'lastError': None,
            'failureCount': 0,
        }

        self._commit({**self.profiles, profile_id: profile})
        logger.info(f"Created profile '{profile['name']}' ({profile_id})")
        return dict(profile)

    def update(self, profile_id: str, updates: Dict[str, Any]) -> Profile:
        profile = self._require(profile_id)
        if not isinstance(updates, dict):
            raise ValidationError(["Profile must be a JSON object"])

        changes = {field: updates[field] for field in MUTABLE_FIELDS if updates.get(field) is not None}
        errors = validate_profile(changes, partial=True)
        if errors:
            raise ValidationError(errors)

        updated = {**profile, **changes, 'modified': isoformat(utc_now())}
        self._commit({**self.profiles, profile_id: updated})
        return dict(updated)

    def delete(self, profile_id: str) -> bool:
        if profile_id not in self.profiles:
            return False
        self._commit({pid: p for pid, p in self.profiles.items() if pid != profile_id})
        logger.info(f"Deleted profile {profile_id}")
        return True

    def list(self, enabled_only: bool = False) -> List[Profile]:
        return [dict(p) for p in self.profiles.values() if p.get('enabled') or not enabled_only]

    def get(self, profile_id: str) -> Profile:
        return dict(self._require(profile_id))

    def record_capture(self, profile_id: str, success: bool, error: Optional[str] = None,
                       now: Optional[datetime] = None) -> Optional[Profile]:
        """Update run history after a capture attempt.

        ``lastRun`` is set on every attempt; a success sets ``lastSuccess``
        and resets ``failureCount`` to 0, a failure increments it. Profiles
        deleted while their capture was running are ignored.
        """
        profile = self.profiles.get(profile_id)
        if profile is None:
            logger.warning(f"Not recording capture for unknown profile {profile_id}")
            return None

        timestamp = isoformat(now or utc_now())
        updated = {**profile, 'lastRun': timestamp}
        if success:
            updated.update(lastSuccess=timestamp, lastError=None, failureCount=0)
        else:
            updated.update(lastError=error, failureCount=profile.get('failureCount', 0) + 1)

        self._commit({**self.profiles, profile_id: updated})
        return dict(updated)

    def due(self, now: Optional[datetime] = None) -> List[Profile]:
        """Profiles whose refresh interval has elapsed"""
        return due_profiles(self.list(), now or utc_now())
