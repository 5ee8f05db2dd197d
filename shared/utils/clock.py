"""
shared/utils/clock.py
Injectable time source. Every "now" comparison in the services goes
through a Clock so tests can freeze or move time.
"""

from datetime import datetime, timezone


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency. Override in tests via app.dependency_overrides."""
    return system_clock
