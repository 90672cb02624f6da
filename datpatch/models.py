import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class BackupMode(Enum):
    """Which calendar month(s) a run targets"""
    PREVIOUS_MONTH = 'previous'
    CURRENT_MONTH = 'current'
    DYNAMIC = 'dynamic'


@dataclass(frozen=True, order=True)
class BackupMonth:
    """A calendar year + month, ordered chronologically"""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __repr__(self):
        return f'<BackupMonth {self.label}>'


# Fractional seconds are normalized to microseconds
_FRACTION_RE = re.compile(r'\.(\d+)')


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z' or a numeric offset. Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")

    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    text = _FRACTION_RE.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text, count=1)

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as RFC 3339 in UTC with a 'Z' suffix"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


@dataclass
class CacheRecord:
    """One completed backup run that produced at least one archive"""
    start_time: datetime
    end_time: datetime
    backup_info: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'StartTime': format_timestamp(self.start_time),
            'EndTime': format_timestamp(self.end_time),
            'BackupInfo': self.backup_info,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheRecord':
        """
        Build a record from its serialized form.

        Raises:
            ValueError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"Cache record must be an object, got {type(data).__name__}")

        missing = [key for key in ('StartTime', 'EndTime', 'BackupInfo') if key not in data]
        if missing:
            raise ValueError(f"Cache record missing fields: {', '.join(missing)}")

        if not isinstance(data['BackupInfo'], str):
            raise ValueError("BackupInfo must be a string")

        return cls(
            start_time=parse_timestamp(data['StartTime']),
            end_time=parse_timestamp(data['EndTime']),
            backup_info=data['BackupInfo'],
        )

    def __repr__(self):
        return f'<CacheRecord end={format_timestamp(self.end_time)} info={self.backup_info!r}>'


@dataclass
class BackupOptions:
    """Parsed run configuration handed to the backup pipeline"""
    source: str
    destination: str
    mode: BackupMode
    silent: bool = False
    keep_months: int = 6

    def __post_init__(self):
        if isinstance(self.mode, str):
            self.mode = BackupMode(self.mode)
        if self.keep_months < 0:
            raise ValueError(f"keep_months must not be negative: {self.keep_months}")
