"""Identifier helpers: run ids, readable request ids, and safe record names."""

from __future__ import annotations

import re
import secrets
import time
import uuid
from collections.abc import Callable, Iterable, MutableSet
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_RANDOM_BYTES: Final[int] = 10
ULID_MAX_TIMESTAMP_MS: Final[int] = (1 << 48) - 1
_ULID_MAX_VALUE: Final[int] = (1 << 128) - 1
_PREFIX_SEPARATOR: Final[str] = "-"

RUN_ID_PREFIX: Final[str] = "run"
DEFAULT_REQUEST_ID: Final[str] = "request"

_DECODE_TABLE: Final[dict[str, int]] = {
    char: index for index, char in enumerate(CROCKFORD_BASE32_ALPHABET)
}
_UNSAFE_FILE_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9_-]")
_SLUG_UNSAFE_CHARS: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]")
_UNDERSCORE_RUNS: Final[re.Pattern[str]] = re.compile(r"_{2,}")

_RandBytes = Callable[[int], bytes]

__all__ = [
    "CROCKFORD_BASE32_ALPHABET",
    "DEFAULT_REQUEST_ID",
    "RUN_ID_PREFIX",
    "ULID_LENGTH",
    "UsedIds",
    "build_readable_id",
    "generate_prefixed_id",
    "generate_run_id",
    "generate_ulid",
    "reserve_unique_id",
    "safe_file_stem",
    "slugify",
    "validate_run_id",
    "validate_ulid",
]


class UsedIds:
    """Case-insensitive set of request ids already taken in a working set."""

    __slots__ = ("_folded",)

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self._folded: set[str] = set()
        for item in initial:
            if isinstance(item, str) and item.strip():
                self.add(item)

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and value.casefold() in self._folded

    def __len__(self) -> int:
        return len(self._folded)

    def add(self, value: str) -> None:
        self._folded.add(value.casefold())


def generate_ulid(
    *,
    timestamp_ms: int | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    """Generate a ULID as a 26-character uppercase Crockford Base32 string."""
    ts_ms = _resolve_timestamp_ms(timestamp_ms)
    random_bytes = _resolve_random_bytes(randbytes)
    ulid_value = (ts_ms << 80) | int.from_bytes(random_bytes, "big")
    return _encode_crockford_base32(ulid_value, ULID_LENGTH)


def validate_ulid(s: str) -> None:
    """Validate a ULID and raise ``ValueError`` with precise context on failure."""
    if not isinstance(s, str):
        raise ValueError(f"ulid must be a string, got {type(s).__name__}")
    if len(s) != ULID_LENGTH:
        raise ValueError(f"ulid length must be {ULID_LENGTH}, got {len(s)}")

    decoded = 0
    for index, char in enumerate(s):
        digit = _DECODE_TABLE.get(char.upper())
        if digit is None:
            raise ValueError(f"invalid ULID character {char!r} at index {index}")
        decoded = (decoded << 5) | digit

    if decoded > _ULID_MAX_VALUE:
        raise ValueError("ulid overflow: value exceeds maximum 128-bit ULID")


def generate_prefixed_id(
    prefix: str,
    *,
    timestamp_ms: int | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    """Generate a prefixed ID in the form ``<prefix>-<ulid>``."""
    if not prefix or _PREFIX_SEPARATOR in prefix:
        raise ValueError(f"prefix must be non-empty and must not contain '{_PREFIX_SEPARATOR}'")
    ulid = generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)
    return f"{prefix}{_PREFIX_SEPARATOR}{ulid}"


def generate_run_id(*, timestamp_ms: int | None = None, randbytes: _RandBytes | None = None) -> str:
    return generate_prefixed_id(RUN_ID_PREFIX, timestamp_ms=timestamp_ms, randbytes=randbytes)


def validate_run_id(id_str: str) -> None:
    lead = f"{RUN_ID_PREFIX}{_PREFIX_SEPARATOR}"
    if not isinstance(id_str, str) or not id_str.startswith(lead):
        raise ValueError(f"expected prefix '{lead}'")
    try:
        validate_ulid(id_str[len(lead) :])
    except ValueError as exc:
        raise ValueError(f"invalid ULID part for prefix '{RUN_ID_PREFIX}': {exc}") from exc


def slugify(value: str | None) -> str:
    """Lower-case ASCII alphanumerics; everything else collapses to single underscores."""
    if value is None or not value.strip():
        return ""
    slug = _SLUG_UNSAFE_CHARS.sub("_", value.lower())
    slug = _UNDERSCORE_RUNS.sub("_", slug)
    return slug.strip("_")


def build_readable_id(request_type: str | None, name: str | None, path: str | None) -> str:
    """Return ``<type>_<slug>`` from the name (or path), or just the type."""
    kind = (request_type or "").strip().lower() or DEFAULT_REQUEST_ID
    source = (name or "").strip() or (path or "").strip()
    slug = slugify(source)
    if not slug:
        return kind
    return f"{kind}_{slug}"


def reserve_unique_id(base_id: str, used: UsedIds | MutableSet[str]) -> str:
    """Reserve ``base_id`` in ``used``, suffixing ``_1``, ``_2``... on collision."""
    base = base_id.strip() or DEFAULT_REQUEST_ID
    candidate = base
    suffix = 1
    while candidate in used:
        candidate = f"{base}_{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def safe_file_stem(value: str | None) -> str:
    """Map a request id to a filesystem-safe stem; falls back to a random hex name."""
    raw = (value or "").strip()
    sanitized = _UNDERSCORE_RUNS.sub("_", _UNSAFE_FILE_CHARS.sub("_", raw)).strip("_")
    if not sanitized:
        return uuid.uuid4().hex
    return sanitized


# ------------------------
# Internal helper routines
# ------------------------


def _resolve_timestamp_ms(timestamp_ms: int | None) -> int:
    resolved = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if not isinstance(resolved, int):
        raise ValueError(f"timestamp_ms must be an int, got {type(resolved).__name__}")
    if not 0 <= resolved <= ULID_MAX_TIMESTAMP_MS:
        raise ValueError(
            f"timestamp_ms out of range: expected 0..{ULID_MAX_TIMESTAMP_MS}, got {resolved}"
        )
    return resolved


def _resolve_random_bytes(randbytes: _RandBytes | None) -> bytes:
    provider = secrets.token_bytes if randbytes is None else randbytes
    raw = bytes(provider(ULID_RANDOM_BYTES))
    if len(raw) != ULID_RANDOM_BYTES:
        raise ValueError(f"randbytes must return exactly {ULID_RANDOM_BYTES} bytes")
    return raw


def _encode_crockford_base32(value: int, length: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")

    mask = 0b11111
    chars = ["0"] * length
    working = value
    for index in range(length - 1, -1, -1):
        chars[index] = CROCKFORD_BASE32_ALPHABET[working & mask]
        working >>= 5

    if working != 0:
        raise ValueError(f"value does not fit into {length} Crockford Base32 characters")
    return "".join(chars)
