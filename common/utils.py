"""Common utility functions."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from pathlib import Path

import yaml


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier."""
    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    short_uuid = uuid.uuid4().hex[:8]
    if prefix:
        return f"{prefix}_{timestamp}_{short_uuid}"
    return f"{timestamp}_{short_uuid}"


def generate_session_id() -> str:
    """Generate a soak session ID."""
    return generate_id("soak")


def parse_duration(duration_str: str) -> int:
    """Parse a duration string (e.g., '90', '30s', '15m', '2h') to seconds."""
    duration_str = str(duration_str).strip().lower()

    units = {
        's': 1,
        'm': 60,
        'h': 3600,
        'd': 86400,
    }

    match = re.match(r'^(\d+)\s*([a-z]*)$', duration_str)
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value = int(match.group(1))
    unit = match.group(2) or 's'

    if unit not in units:
        raise ValueError(f"Unknown unit: {unit}")

    return value * units[unit]


def format_duration(seconds: int) -> str:
    """Format seconds to human-readable duration."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs}s"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        secs = seconds % 60
        return f"{hours}h {minutes}m {secs}s"


def load_yaml(path: str | Path) -> dict:
    """Load a YAML file."""
    with open(path, 'r') as f:
        return yaml.safe_load(f) or {}


def save_yaml(path: str | Path, data: dict) -> None:
    """Save data to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


class Timer:
    """Simple context manager for timing code blocks."""

    def __init__(self):
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None

    def __enter__(self):
        self.start_time = datetime.utcnow()
        return self

    def __exit__(self, *args):
        self.end_time = datetime.utcnow()

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0
        end = self.end_time or datetime.utcnow()
        return (end - self.start_time).total_seconds()
