"""Value objects shared by the capture pipeline, the stores and the API."""
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

MIN_DIMENSION = 100
MAX_DIMENSION = 4000
DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 480
THEMES = ('light', 'dark')
OUTPUT_FORMATS = ('png', 'jpeg', 'bmp3', 'bmp')

# Profiles are persisted as plain JSON objects keyed by these fields
Profile = Dict[str, Any]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix"""
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def is_number(value: Any) -> bool:
    """True for int/float values; bools are rejected even though they subclass int"""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def dimension_errors(field: str, value: Any) -> List[str]:
    if not is_number(value) or value < MIN_DIMENSION or value > MAX_DIMENSION:
        return [f"{field.capitalize()} must be a number between {MIN_DIMENSION} and {MAX_DIMENSION}"]
    return []


@dataclass
class CaptureRequest:
    """A single capture job: where to go, how big, and what to produce"""
    url: str
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    theme: str = 'light'
    output_format: str = 'png'
    token: Optional[str] = None

    def validate(self) -> List[str]:
        errors = []
        if not self.url or not isinstance(self.url, str):
            errors.append("URL is required and must be a string")
        errors.extend(dimension_errors('width', self.width))
        errors.extend(dimension_errors('height', self.height))
        if self.theme not in THEMES:
            errors.append('Theme must be either "light" or "dark"')
        return errors


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of one capture attempt"""
    success: bool
    url: Optional[str] = None
    filename: Optional[str] = None
    size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def failed(cls, url: Optional[str], error: str, error_type: str = 'capture_error') -> 'CaptureResult':
        return cls(success=False, url=url, error=error, error_type=error_type,
                   timestamp=isoformat(utc_now()))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': self.success,
            'url': self.url,
            'filename': self.filename,
            'size': self.size,
            'width': self.width,
            'height': self.height,
            'format': self.format,
            'timestamp': self.timestamp,
            'error': self.error,
            'errorType': self.error_type,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class StoredImage:
    """Metadata for one file in the capture store"""
    filename: str
    path: Path
    size: int
    created: datetime
    modified: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'size': self.size,
            'created': isoformat(self.created),
            'modified': isoformat(self.modified),
        }
