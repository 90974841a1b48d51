"""Versioning policy for generated artifacts.

Two counters exist and they are deliberately kept apart:

* the artifact store's integer ``version`` counts writes to a
  ``(project, type)`` key. It starts at 1 and grows by exactly 1 on every
  upsert. It is the authoritative number for storage and change detection.
* the requirements document's ``"<major>.<minor>"`` string is part of the
  document content and is meant for people reading it. Every regeneration
  bumps the minor component of the previously stored document.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone

INITIAL_DOCUMENT_VERSION = "1.0"
INITIAL_STORE_VERSION = 1

_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)$")


def next_document_version(previous: str | None) -> str:
    if not previous:
        return INITIAL_DOCUMENT_VERSION
    match = _SEMVER_RE.match(previous.strip())
    if not match:
        return INITIAL_DOCUMENT_VERSION
    major, minor = int(match.group(1)), int(match.group(2))
    return f"{major}.{minor + 1}"


def next_store_version(current: int | None) -> int:
    if current is None:
        return INITIAL_STORE_VERSION
    return current + 1


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = [
    "INITIAL_DOCUMENT_VERSION",
    "INITIAL_STORE_VERSION",
    "next_document_version",
    "next_store_version",
    "utc_timestamp",
]
