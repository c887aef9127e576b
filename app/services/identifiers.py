"""Folio and verification-code generation for disposal certificates.

Both identifiers are derived from an explicit instant and random source so the
generation is replayable in tests; production callers leave them defaulted.
"""
import random
import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

FOLIO_PREFIX = "BAJA"
VERIFICATION_PREFIX = "ZIII"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_BASE36_DIGITS = string.digits + string.ascii_uppercase
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_system_random = secrets.SystemRandom()


@dataclass(frozen=True)
class GeneratedIdentifiers:
    folio: str
    verification_code: str


def _normalize(value: str) -> str:
    return _NON_ALNUM.sub("", value or "").upper()


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    sign = "-" if number < 0 else ""
    number = abs(number)
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36_DIGITS[rem])
    return sign + "".join(reversed(digits))


def epoch_millis(now: datetime) -> int:
    """Milliseconds since the Unix epoch; naive datetimes are local time."""
    if now.tzinfo is None:
        now = now.astimezone()
    return (now - _EPOCH) // timedelta(milliseconds=1)


def make_folio(now: datetime) -> str:
    """Return ``BAJA-YYYYMMDD-HHMMSSmmm`` built from the calendar fields of ``now``."""
    return (
        f"{FOLIO_PREFIX}-{now.year:04d}{now.month:02d}{now.day:02d}"
        f"-{now.hour:02d}{now.minute:02d}{now.second:02d}{now.microsecond // 1000:03d}"
    )


def asset_fragment(asset_tag: str) -> str:
    return _normalize(asset_tag)[:4].ljust(4, "X")


def serial_fragment(serial_number: str) -> str:
    return _normalize(serial_number)[-4:].rjust(4, "0")


def random_suffix(rng: random.Random, length: int = 4) -> str:
    return "".join(rng.choice(_SUFFIX_ALPHABET) for _ in range(length))


def make_verification_code(
    asset_tag: str,
    serial_number: str,
    now: datetime,
    rng: random.Random,
) -> str:
    """Build ``ZIII-{asset}-{serial}-{base36 ms}-{random}``.

    Total over any input: short or empty tags and serials are padded to four
    characters. The code is a tamper-evidence aid, not a cryptographic proof.
    """
    timestamp = _to_base36(epoch_millis(now))
    return "-".join(
        [
            VERIFICATION_PREFIX,
            asset_fragment(asset_tag),
            serial_fragment(serial_number),
            timestamp,
            random_suffix(rng),
        ]
    )


def generate_identifiers(
    asset_tag: str,
    serial_number: str,
    now: datetime = None,
    rng: random.Random = None,
) -> GeneratedIdentifiers:
    now = now or datetime.now()
    rng = rng or _system_random
    return GeneratedIdentifiers(
        folio=make_folio(now),
        verification_code=make_verification_code(asset_tag, serial_number, now, rng),
    )
