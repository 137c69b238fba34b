"""
Content signatures: synthetic event ids for condition-based alerts.

A resource that "currently has these findings" has no natural event id. Its
signature is derived from the finding set itself, so the same set signs the
same way on every poll and any change produces a new signature. An optional
day bucket lets an unresolved condition re-alert once per UTC day.
"""

import hashlib
import re
from collections.abc import Iterable
from datetime import UTC, datetime

CLEAN_SIGNATURE = "clean"

_WHITESPACE = re.compile(r"\s+")


def normalize_finding(description: str) -> str:
    """Case- and whitespace-insensitive form of a finding description."""
    return _WHITESPACE.sub(" ", description).strip().lower()


def day_bucket(moment: datetime) -> str:
    """UTC calendar day of ``moment`` as YYYY-MM-DD."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%d")


def content_signature(
    findings: Iterable[str], bucket: datetime | str | None = None
) -> str:
    """
    Stable signature of a finding set.

    Findings are normalized, de-duplicated and sorted so order and spacing do
    not matter. An empty set signs as ``clean``.
    """
    normalized = sorted(
        {normalize_finding(f) for f in findings if normalize_finding(f)}
    )
    if not normalized:
        return CLEAN_SIGNATURE

    digest = hashlib.sha256("|".join(normalized).encode("utf-8")).hexdigest()
    if bucket is None:
        return digest
    if isinstance(bucket, datetime):
        bucket = day_bucket(bucket)
    return f"{digest}-{bucket}"
