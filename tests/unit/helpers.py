"""Helpers shared by the certledger unit tests."""

from datetime import datetime, timezone

EXPIRY = datetime(2031, 6, 30, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Nanosecond clock that replays a fixed sequence, repeating the last value."""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


def add_cert(ledger, device_id, serial, name="cert", valid_until=EXPIRY):
    ledger.add_certificate(device_id, name, serial, b"\x01\x02key", valid_until, b"DER-" + str(serial).encode())
