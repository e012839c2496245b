"""
Test doubles shared across the suite.
"""

from datetime import datetime, timedelta, timezone


class FakeClock:
    """Settable wall clock for token and reset-expiry tests."""

    def __init__(self, start: datetime = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Settable monotonic clock for rate limiter tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMailer:
    """Collects reset e-mails instead of sending them."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_password_reset(self, to_email, reset_token, first_name=None) -> bool:
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.sent.append({"to_email": to_email, "token": reset_token, "first_name": first_name})
        return True
