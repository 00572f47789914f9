"""
Backup document schemas — canonical and legacy variants.

Every shape a backup has ever been stored in is described by one
variant class with one normalizer. Detection and normalization happen
only here; callers receive a ``NormalizedEntry`` or a ``CorruptRecord``.

    CanonicalRecord   {"applications": [...], "timestamp": "...", "version": "1.0"}
    CompressedRecord  {"apps": [...], "ts": "...", "v": "1.0.0", "count": n}
    EnvelopeRecord    {"data": "<json>" | {...} | [...], "timestamp": ...}
    BareApplications  [{...}, {...}]

Documents mixing canonical and compressed keys are accepted; the
field-alias table decides which key wins.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from app.core.errors import CorruptRecord
from app.models.backup_record import (
    CURRENT_SCHEMA_VERSION,
    ApplicationSnapshot,
    BackupRecord,
    RecoveryCandidate,
)

# Field aliases, most preferred first.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "applications": ("applications", "apps"),
    "timestamp": ("timestamp", "ts", "lastModified", "createdAt"),
    "version": ("version", "v", "schemaVersion"),
    "count": ("count",),
}

SNAPSHOT_FIELDS = (
    "id",
    "company",
    "position",
    "dateApplied",
    "status",
    "type",
    "location",
    "salary",
    "jobSource",
    "jobUrl",
    "notes",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class NormalizedEntry:
    """A stored document mapped onto the canonical field names."""

    applications: list[ApplicationSnapshot]
    timestamp: str | None
    version: str
    variant: str
    declared_count: int | None = None


def _pick(doc: dict[str, Any], field_name: str) -> Any:
    for alias in FIELD_ALIASES[field_name]:
        if alias in doc and doc[alias] is not None:
            return doc[alias]
    return None


def _timestamp_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    if not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(moment: datetime) -> str:
    """Canonical timestamp format for new records."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CanonicalRecord:
    """Current layout, possibly carrying compressed keys alongside."""

    name = "canonical"

    @staticmethod
    def matches(doc: Any) -> bool:
        return isinstance(doc, dict) and "applications" in doc

    @staticmethod
    def normalize(doc: dict[str, Any]) -> NormalizedEntry:
        count = _pick(doc, "count")
        return NormalizedEntry(
            applications=doc["applications"],
            timestamp=_timestamp_str(_pick(doc, "timestamp")),
            version=str(_pick(doc, "version") or CURRENT_SCHEMA_VERSION),
            variant=CanonicalRecord.name,
            declared_count=count if isinstance(count, int) and not isinstance(count, bool) else None,
        )


class CompressedRecord:
    """Compressed local-storage layout: apps / ts / v / count."""

    name = "compressed"

    @staticmethod
    def matches(doc: Any) -> bool:
        return isinstance(doc, dict) and "apps" in doc

    @staticmethod
    def normalize(doc: dict[str, Any]) -> NormalizedEntry:
        count = _pick(doc, "count")
        return NormalizedEntry(
            applications=doc["apps"],
            timestamp=_timestamp_str(_pick(doc, "timestamp")),
            version=str(_pick(doc, "version") or "1.0.0"),
            variant=CompressedRecord.name,
            declared_count=count if isinstance(count, int) and not isinstance(count, bool) else None,
        )


class EnvelopeRecord:
    """Database backup row: the payload sits under ``data``, often as a JSON string."""

    name = "envelope"

    @staticmethod
    def matches(doc: Any) -> bool:
        return isinstance(doc, dict) and "data" in doc

    @staticmethod
    def normalize(doc: dict[str, Any]) -> NormalizedEntry:
        payload = doc["data"]
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise ValueError(f"envelope payload is not JSON: {e}") from e
        inner = normalize_document(payload)
        timestamp = _timestamp_str(_pick(doc, "timestamp")) or inner.timestamp
        return NormalizedEntry(
            applications=inner.applications,
            timestamp=timestamp,
            version=str(_pick(doc, "version") or inner.version),
            variant=EnvelopeRecord.name,
            declared_count=inner.declared_count,
        )


class BareApplications:
    """A bare array of applications with no metadata."""

    name = "bare"

    @staticmethod
    def matches(doc: Any) -> bool:
        return isinstance(doc, list)

    @staticmethod
    def normalize(doc: list[Any]) -> NormalizedEntry:
        return NormalizedEntry(applications=doc, timestamp=None, version="", variant=BareApplications.name)


# Checked in order; the first variant that matches normalizes the document.
VARIANTS = (CanonicalRecord, CompressedRecord, EnvelopeRecord, BareApplications)


def normalize_document(doc: Any) -> NormalizedEntry:
    """Map any known document shape onto canonical names. Raises ValueError."""
    for variant in VARIANTS:
        if variant.matches(doc):
            entry = variant.normalize(doc)
            if not isinstance(entry.applications, list):
                raise ValueError(f"{variant.name}: applications is not a list")
            return entry
    raise ValueError("unrecognised backup layout")


def is_valid_application(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("company"), str)
        and isinstance(item.get("position"), str)
        and item["company"].strip() != ""
        and item["position"].strip() != ""
    )


def validation_errors(entry: NormalizedEntry) -> list[str]:
    """Reasons an entry cannot be offered for recovery (empty if valid)."""
    errors: list[str] = []
    if not entry.applications:
        errors.append("no applications")
    elif not all(is_valid_application(a) for a in entry.applications):
        errors.append("application missing company or position")
    if entry.declared_count is not None and entry.declared_count != len(entry.applications):
        errors.append(f"count mismatch ({entry.declared_count} declared, {len(entry.applications)} found)")
    return errors


def parse_record(key: str, raw: str) -> BackupRecord:
    """Structurally parse a stored record. Raises CorruptRecord."""
    try:
        doc = json.loads(raw)
        entry = normalize_document(doc)
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        raise CorruptRecord(key, str(e)) from e
    if entry.timestamp is None or parse_timestamp(entry.timestamp) is None:
        raise CorruptRecord(key, "missing or unparseable timestamp")
    if not all(isinstance(a, dict) for a in entry.applications):
        raise CorruptRecord(key, "applications must be objects")
    return BackupRecord(
        applications=tuple(entry.applications),
        timestamp=entry.timestamp,
        schema_version=entry.version,
        key=key,
    )


def iter_legacy_documents(key: str, raw: str) -> Iterable[tuple[str, Any]]:
    """
    Yield ``(source, document)`` pairs from a legacy entry.

    A JSON array whose elements are all backup documents (the rotating
    backup list) yields one document per element; anything else is
    yielded whole.
    """
    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptRecord(key, str(e)) from e
    if isinstance(doc, list) and doc and all(
        isinstance(d, dict) and any(alias in d for alias in ("applications", "apps", "data")) for d in doc
    ):
        for i, element in enumerate(doc):
            yield f"{key}[{i}]", element
    else:
        yield key, doc


def project_application(app: dict[str, Any], notes_max_length: int = 500) -> ApplicationSnapshot:
    """Minimal projection of a live Application for local storage."""
    snapshot: ApplicationSnapshot = {}
    for name in SNAPSHOT_FIELDS:
        if name in app and app[name] is not None:
            snapshot[name] = app[name]
    notes = snapshot.get("notes")
    if isinstance(notes, str) and notes_max_length and len(notes) > notes_max_length:
        snapshot["notes"] = notes[:notes_max_length]
    attachments = app.get("attachments")
    if attachments:
        snapshot["attachmentCount"] = len(attachments)
    elif "attachmentCount" in app:
        snapshot["attachmentCount"] = app["attachmentCount"]
    return snapshot


def recency_key(item: BackupRecord | RecoveryCandidate) -> tuple[datetime, int]:
    """
    The single ordering shared by the store, scanner and reconciler:
    newer first, then more applications first. Sort with ``reverse=True``
    or pick with ``max``.
    """
    if isinstance(item, RecoveryCandidate):
        moment = item.parsed_at
    else:
        moment = parse_timestamp(item.timestamp)
    return (moment or _EPOCH, item.count)
