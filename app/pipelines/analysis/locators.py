"""Resource locator validation.

Locators are opaque strings pointing at uploaded media. Only the scheme
prefix (and, for S3, the presence of a bucket and key) is checked here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .errors import InvalidLocatorError

S3_SCHEME = "s3"
HTTP_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class Locator:
    scheme: str
    raw: str
    bucket: str | None = None
    key: str | None = None


def parse_locator(value: str | None, *, allowed_schemes: Iterable[str]) -> Locator:
    """Validate ``value`` against ``allowed_schemes`` and split S3 paths."""

    allowed = tuple(allowed_schemes)
    if not value or not isinstance(value, str) or not value.strip():
        raise InvalidLocatorError("Resource locator is empty.")

    raw = value.strip()
    scheme, sep, remainder = raw.partition("://")
    scheme = scheme.lower()
    if not sep or scheme not in allowed:
        raise InvalidLocatorError(
            f"Unsupported locator {raw!r}; expected one of: "
            + ", ".join(f"{s}://" for s in allowed)
        )

    if scheme == S3_SCHEME:
        bucket, _, key = remainder.partition("/")
        if not bucket or not key:
            raise InvalidLocatorError(f"S3 locator {raw!r} must be s3://bucket/key")
        return Locator(scheme=scheme, raw=raw, bucket=bucket, key=key)

    host = remainder.split("/", 1)[0]
    if not host:
        raise InvalidLocatorError(f"Locator {raw!r} has no host")
    return Locator(scheme=scheme, raw=raw)


__all__ = ["HTTP_SCHEMES", "Locator", "S3_SCHEME", "parse_locator"]
