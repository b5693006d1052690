"""
Typed environment accessor — parse environment variables into typed values.

Every getter comes in two flavours:
    • get_<type>(key)              raises NotSetError / ParseError
    • get_<type>_or_default(key, d) never raises, falls back to ``d``

An empty value counts as "not set" for the typed getters. ``lookup`` is the
only operation that tells an absent key apart from an empty one.

The lookup function is injectable, so tests never have to mutate the real
process environment:

    env = Environ.from_mapping({"HTTP_TIMEOUT": "1h30m"})
    env.get_duration("HTTP_TIMEOUT")   # timedelta(hours=1, minutes=30)

Module-level functions read ``os.environ`` on every call (no caching):

    from backend.app.core import env
    port = env.get_int_or_default("PORT", 8000)
"""

from __future__ import annotations

import math
import os
import re
from datetime import timedelta
from fractions import Fraction
from typing import Callable, Mapping, Optional, Tuple, TypeVar

from backend.app.core.errors import NotSetError, ParseError

T = TypeVar("T")
LookupFn = Callable[[str], Optional[str]]

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

TRUE_TOKENS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
FALSE_TOKENS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INF_TOKENS = frozenset({"inf", "infinity"})
_DURATION_PART_RE = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")

# ── Duration units, in nanoseconds ──
_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # micro sign
    "μs": 1_000,  # greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}


# ═══════════════════════════════════════════════════════════════════════════
# Parsers
# ═══════════════════════════════════════════════════════════════════════════

def parse_int64(value: str) -> int:
    """Base-10 signed integer that fits in 64 bits."""
    if not _INT_RE.fullmatch(value):
        raise ValueError("invalid syntax")
    result = int(value)
    if not INT64_MIN <= result <= INT64_MAX:
        raise ValueError("value out of range")
    return result


def parse_float64(value: str) -> float:
    if not value.isascii() or value != value.strip() or "_" in value:
        raise ValueError("invalid syntax")
    result = float(value)
    if math.isinf(result) and value.lstrip("+-").lower() not in _INF_TOKENS:
        raise ValueError("value out of range")
    return result


def parse_bool(value: str) -> bool:
    if value in TRUE_TOKENS:
        return True
    if value in FALSE_TOKENS:
        return False
    raise ValueError("invalid syntax")


def parse_duration(text: str) -> timedelta:
    """
    Parse a composite unit-suffixed duration such as ``"1h30m"``, ``"1.5s"``,
    ``"300ms"`` or ``"-2m45s"``.

    Valid units: ns, us (µs), ms, s, m, h. A bare ``"0"`` needs no unit.
    Precision below one microsecond is truncated.
    """
    s = text
    negative = False
    if s and s[0] in "+-":
        negative = s[0] == "-"
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {text!r}")

    total = Fraction(0)
    pos = 0
    while pos < len(s):
        match = _DURATION_PART_RE.match(s, pos)
        whole, frac, unit = match.group(1), match.group(2) or "", match.group(3)
        if not whole and not frac:
            raise ValueError(f"invalid duration {text!r}")
        if not unit:
            raise ValueError(f"missing unit in duration {text!r}")
        scale = _NANOS_PER_UNIT.get(unit)
        if scale is None:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        amount = Fraction(int(whole or "0"))
        if frac:
            amount += Fraction(int(frac), 10 ** len(frac))
        total += amount * scale
        pos = match.end()

    nanos = int(total)
    if nanos > (INT64_MAX + 1 if negative else INT64_MAX):
        raise ValueError(f"invalid duration {text!r}")
    delta = timedelta(microseconds=nanos // 1000)
    return -delta if negative else delta


# ═══════════════════════════════════════════════════════════════════════════
# Accessor
# ═══════════════════════════════════════════════════════════════════════════

class Environ:
    """Typed view over an environment lookup function."""

    def __init__(self, lookup: Optional[LookupFn] = None):
        self._lookup: LookupFn = lookup if lookup is not None else os.environ.get

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "Environ":
        return cls(mapping.get)

    # ── Raw strings ──

    def get(self, key: str) -> str:
        """Value of ``key``, or ``""`` when absent."""
        value = self._lookup(key)
        return value if value is not None else ""

    def get_or_default(self, key: str, default: str) -> str:
        """Value of ``key``, or ``default`` when absent or empty."""
        return self.get(key) or default

    def lookup(self, key: str) -> Tuple[str, bool]:
        """``(value, present)``; present-but-empty yields ``("", True)``."""
        value = self._lookup(key)
        if value is None:
            return "", False
        return value, True

    # ── Typed ──

    def get_int(self, key: str) -> int:
        return self._parse(key, parse_int64, "int")

    def get_int_or_default(self, key: str, default: int) -> int:
        return self._parse_or_default(key, parse_int64, default)

    def get_int64(self, key: str) -> int:
        return self._parse(key, parse_int64, "int64")

    def get_int64_or_default(self, key: str, default: int) -> int:
        return self._parse_or_default(key, parse_int64, default)

    def get_float64(self, key: str) -> float:
        return self._parse(key, parse_float64, "float64")

    def get_float64_or_default(self, key: str, default: float) -> float:
        return self._parse_or_default(key, parse_float64, default)

    def get_bool(self, key: str) -> bool:
        """Accepts 1, t, T, TRUE, true, True, 0, f, F, FALSE, false, False."""
        return self._parse(key, parse_bool, "bool")

    def get_bool_or_default(self, key: str, default: bool) -> bool:
        return self._parse_or_default(key, parse_bool, default)

    def get_duration(self, key: str) -> timedelta:
        """Duration string such as ``"1h"``, ``"30m"`` or ``"10s"``."""
        return self._parse(key, parse_duration, "duration")

    def get_duration_or_default(self, key: str, default: timedelta) -> timedelta:
        return self._parse_or_default(key, parse_duration, default)

    # ── Internals ──

    def _parse(self, key: str, parser: Callable[[str], T], kind: str) -> T:
        value = self.get(key)
        if not value:
            raise NotSetError(key)
        try:
            return parser(value)
        except ValueError as exc:
            raise ParseError(key, value, kind, str(exc)) from exc

    def _parse_or_default(self, key: str, parser: Callable[[str], T], default: T) -> T:
        value = self.get(key)
        if not value:
            return default
        try:
            return parser(value)
        except ValueError:
            return default


# ── Process environment ──
environ = Environ()

get = environ.get
get_or_default = environ.get_or_default
lookup = environ.lookup
get_int = environ.get_int
get_int_or_default = environ.get_int_or_default
get_int64 = environ.get_int64
get_int64_or_default = environ.get_int64_or_default
get_float64 = environ.get_float64
get_float64_or_default = environ.get_float64_or_default
get_bool = environ.get_bool
get_bool_or_default = environ.get_bool_or_default
get_duration = environ.get_duration
get_duration_or_default = environ.get_duration_or_default
