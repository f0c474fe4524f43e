"""Daily announcements ("surprises") keyed by UTC calendar date."""

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger


def today_utc() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def load_announcements(path: Path) -> list[dict[str, Any]]:
    """Load announcement records from a JSON list.

    A missing or malformed file yields an empty list.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No announcements file at {path}")
        return []
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read announcements file {path}: {e}")
        return []
    if not isinstance(data, list):
        logger.error(f"Announcements file {path} must contain a JSON list")
        return []
    records = [r for r in data if isinstance(r, dict) and "date" in r]
    logger.info(f"Loaded {len(records)} announcements from {path}")
    return records


class AnnouncementBook:
    """Lookup of announcement records by date."""

    def __init__(self, records: list[dict[str, Any]]):
        self.records = records

    @classmethod
    def from_file(cls, path: Path) -> "AnnouncementBook":
        return cls(load_announcements(path))

    def for_date(self, day: Optional[str | date] = None) -> Optional[dict[str, Any]]:
        """First record for ``day`` (default: today in UTC), or None."""
        if day is None:
            key = today_utc()
        elif isinstance(day, date):
            key = day.strftime("%Y-%m-%d")
        else:
            key = day
        for record in self.records:
            if record.get("date") == key:
                return record
        return None
