"""
Injected time and identity sources.

The orchestrator never calls ``datetime.now()`` or ``uuid4()`` directly;
tests swap in the fixed/sequential versions below.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class IdGenerator(Protocol):
    def generate(self) -> str: ...

    def token(self) -> str: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class UuidGenerator:
    """Random UUID4 ids and URL-safe link tokens."""

    def generate(self) -> str:
        return str(uuid.uuid4())

    def token(self) -> str:
        return secrets.token_urlsafe(32)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        """Move forward by ``timedelta(**kwargs)`` and return the new time."""
        self.current = self.current + timedelta(**kwargs)
        return self.current


class SequentialIdGenerator:
    """Predictable ids: ``prefix-1``, ``prefix-2``, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self.counter = 0

    def generate(self) -> str:
        self.counter += 1
        return f"{self.prefix}-{self.counter}"

    def token(self) -> str:
        self.counter += 1
        return f"token-{self.counter}"
