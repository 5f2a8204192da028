"""File-backed storage for captured images."""
import logging
import re
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import NotFound
from .models import StoredImage, isoformat, utc_now

logger = logging.getLogger(__name__)

FILENAME_PREFIX = 'screenshot-'
DEFAULT_LIST_LIMIT = 20
DEFAULT_MAX_AGE_HOURS = 24
DEFAULT_MAX_COUNT = 50

CREATED_PATTERN = re.compile(
    '^' + FILENAME_PREFIX + r'(\d{4})-(\d{2})-(\d{2})T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z-'
)


class CaptureStore:
    """Directory of timestamped screenshot files.

    Filenames look like ``screenshot-2024-05-01T12-00-00-000Z-1a2b3c4d.png``:
    the creation time with ':' and '.' replaced by '-', then 8 random hex
    characters so captures finishing in the same millisecond never collide.
    Listings are recomputed from the directory on every call.
    """

    def __init__(self, root):
        self.root = Path(root)

    def ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_filename(extension: str, now: Optional[datetime] = None) -> str:
        timestamp = isoformat(now or utc_now()).replace(':', '-').replace('.', '-')
        return f"{FILENAME_PREFIX}{timestamp}-{secrets.token_hex(4)}.{extension}"

    def save(self, data: bytes, extension: str) -> str:
        """Write ``data`` to a new file and return its name.

        OSError (disk full, permission denied) propagates to the caller and no
        partial file is left behind.
        """
        self.ensure_root()
        while True:
            filename = self.generate_filename(extension)
            path = self.root / filename
            try:
                f = open(path, 'xb')
            except FileExistsError:
                logger.warning(f"Filename collision on {filename}, retrying")
                continue
            try:
                with f:
                    f.write(data)
            except OSError:
                path.unlink(missing_ok=True)
                raise
            logger.info(f"Saved screenshot: {filename} ({len(data)} bytes)")
            return filename

    def _resolve(self, filename: str) -> Optional[Path]:
        """Map ``filename`` to a path inside the store root, or None if it escapes it"""
        root = self.root.resolve()
        try:
            path = (root / filename).resolve()
        except (OSError, ValueError):
            # Embedded NUL bytes, names over the length limit
            return None
        if path == root or not path.is_relative_to(root):
            return None
        return path

    @staticmethod
    def _created(filename: str) -> Optional[datetime]:
        """Creation time encoded in a generated filename"""
        match = CREATED_PATTERN.match(filename)
        if match is None:
            return None
        year, month, day, hour, minute, second, millis = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, hour, minute, second, millis * 1000, tzinfo=timezone.utc)
        except ValueError:
            return None

    def _scan(self) -> List[StoredImage]:
        if not self.root.is_dir():
            return []

        images = []
        for path in self.root.iterdir():
            if not path.name.startswith(FILENAME_PREFIX) or not path.is_file():
                continue
            try:
                stats = path.stat()
            except FileNotFoundError:
                # Deleted between iterdir() and stat()
                continue
            images.append(StoredImage(
                filename=path.name,
                path=path,
                size=stats.st_size,
                created=self._created(path.name) or datetime.fromtimestamp(stats.st_mtime, timezone.utc),
                modified=datetime.fromtimestamp(stats.st_mtime, timezone.utc),
            ))

        images.sort(key=lambda image: image.modified, reverse=True)
        return images

    def list(self, limit: Optional[int] = DEFAULT_LIST_LIMIT) -> List[StoredImage]:
        """Stored images, newest modification first"""
        images = self._scan()
        if limit is not None:
            images = images[:max(limit, 0)]
        return images

    def get(self, filename: str) -> bytes:
        path = self._resolve(filename)
        try:
            if path is not None and path.is_file():
                return path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to read screenshot {filename}: {e}")
        raise NotFound(f"Screenshot not found: {filename}")

    def delete(self, filename: str) -> bool:
        path = self._resolve(filename)
        try:
            exists = path is not None and path.is_file()
        except OSError:
            exists = False
        if not exists:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Deleted screenshot: {filename}")
        return True

    def retain(self, max_age_hours: float = DEFAULT_MAX_AGE_HOURS, max_count: int = DEFAULT_MAX_COUNT) -> int:
        """Delete images beyond the ``max_count`` newest or older than ``max_age_hours``.

        Returns the number of files deleted. Files that cannot be removed are
        logged and skipped.
        """
        now = time.time()
        max_age_seconds = max_age_hours * 3600
        deleted = 0

        for index, image in enumerate(self._scan()):
            age = now - image.modified.timestamp()
            if index < max_count and age <= max_age_seconds:
                continue
            try:
                image.path.unlink()
                deleted += 1
            except OSError as e:
                logger.error(f"Failed to delete {image.filename}: {e}")

        if deleted > 0:
            logger.info(f"Cleaned up {deleted} old screenshots")
        return deleted
