"""Recovery — scan stored snapshots, pick a candidate, drive the recovery prompt."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any, Callable

from loguru import logger

from app.core.errors import CorruptRecord, InvalidCandidate, InvalidTransition, StorageUnavailable
from app.core.record_store import BackupRecordStore
from app.core.schema import (
    NormalizedEntry,
    iter_legacy_documents,
    normalize_document,
    parse_timestamp,
    recency_key,
    validation_errors,
)
from app.models.backup_record import RecoveryCandidate, RecoveryStats


class RecoveryScanner:
    """Reads every record and legacy entry, normalizes and validates them. Read-only."""

    def __init__(
        self,
        store: BackupRecordStore,
        max_age_days: int = 0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._max_age_days = max_age_days
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def _is_expired(self, moment: datetime | None) -> bool:
        if not self._max_age_days or moment is None:
            return False
        return moment < self._clock() - timedelta(days=self._max_age_days)

    def _candidate(self, source: str, entry: NormalizedEntry) -> RecoveryCandidate:
        errors = validation_errors(entry)
        if errors:
            raise CorruptRecord(source, "; ".join(errors))
        parsed_at = parse_timestamp(entry.timestamp)
        if self._is_expired(parsed_at):
            raise CorruptRecord(source, f"older than {self._max_age_days} days")
        return RecoveryCandidate(
            applications=tuple(dict(app) for app in entry.applications),
            timestamp=entry.timestamp,
            parsed_at=parsed_at,
            schema_version=entry.version,
            source=source,
            variant=entry.variant,
        )

    def _from_legacy(self, key: str, raw: str) -> list[RecoveryCandidate]:
        found: list[RecoveryCandidate] = []
        try:
            documents = list(iter_legacy_documents(key, raw))
        except CorruptRecord as e:
            logger.warning(f"Skipping unreadable legacy backup {e}")
            return found
        for source, doc in documents:
            try:
                entry = normalize_document(doc)
                found.append(self._candidate(source, entry))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping legacy backup {source}: {e}")
            except CorruptRecord as e:
                logger.warning(f"Skipping legacy backup {e}")
        return found

    def scan(self) -> list[RecoveryCandidate]:
        """Valid candidates, newest first, then most complete first."""
        candidates: list[RecoveryCandidate] = []
        try:
            records = self._store.record_payloads()
            legacy = self._store.legacy_entries()
        except StorageUnavailable as e:
            logger.warning(f"Recovery scan skipped, storage unavailable: {e}")
            return []

        for key, raw in records:
            try:
                entry = normalize_document(json.loads(raw))
                candidates.append(self._candidate(key, entry))
            except (ValueError, TypeError) as e:
                logger.debug(f"Backup not recoverable {key}: {e}")
            except CorruptRecord as e:
                logger.debug(f"Backup not recoverable {e}")

        for key, raw in legacy:
            candidates.extend(self._from_legacy(key, raw))

        candidates.sort(key=recency_key, reverse=True)
        logger.debug(f"Recovery scan found {len(candidates)} candidate(s)")
        return candidates


def restore_application(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Expand a stored snapshot back into the live Application shape."""
    app = {k: v for k, v in snapshot.items() if k != "attachmentCount"}
    app.setdefault("notes", "")
    app.setdefault("attachments", [])
    return app


class RecoveryReconciler:
    """Selects one candidate. Never merges candidates."""

    def __init__(self, scanner: RecoveryScanner) -> None:
        self._scanner = scanner

    def candidates(self) -> list[RecoveryCandidate]:
        return self._scanner.scan()

    @staticmethod
    def select(candidates: list[RecoveryCandidate]) -> RecoveryCandidate | None:
        if not candidates:
            return None
        return max(candidates, key=recency_key)

    def best(self) -> RecoveryCandidate | None:
        """Most recent candidate, most complete on ties."""
        return self.select(self.candidates())

    @staticmethod
    def validate(candidate: RecoveryCandidate) -> list[str]:
        entry = NormalizedEntry(
            applications=list(candidate.applications),
            timestamp=candidate.timestamp,
            version=candidate.schema_version,
            variant=candidate.variant,
        )
        errors = validation_errors(entry)
        if not candidate.source:
            errors.append("missing recovery source")
        return errors

    def accept(self, candidate: RecoveryCandidate) -> list[dict[str, Any]]:
        """Return the applications to commit upstream. Persisting them is the caller's job."""
        errors = self.validate(candidate)
        if errors:
            raise InvalidCandidate(errors)
        logger.info(f"Recovering {candidate.count} applications from {candidate.source}")
        return [restore_application(app) for app in candidate.applications]

    def stats(self) -> RecoveryStats:
        candidates = self.candidates()
        sources: list[str] = []
        for c in candidates:
            if c.source not in sources:
                sources.append(c.source)
        return RecoveryStats(
            total_options=len(candidates),
            total_applications=sum(c.count for c in candidates),
            sources=sources,
            latest_backup=candidates[0].timestamp if candidates else None,
        )


class RecoveryState(StrEnum):
    IDLE = "idle"
    SCANNING = "scanning"
    NO_CANDIDATES = "no_candidates"
    CANDIDATES_FOUND = "candidates_found"
    PROMPTING = "prompting"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"


class RecoveryFlow:
    """
    Recovery-offer state machine for one session.

    Idle -> Scanning -> NoCandidates | CandidatesFound -> Prompting -> Accepted | Dismissed

    Recovery is only offered when the live application count is zero, so
    existing data is never silently overwritten.
    """

    def __init__(self, reconciler: RecoveryReconciler) -> None:
        self._reconciler = reconciler
        self._state = RecoveryState.IDLE
        self._dismissed = False
        self._candidates: list[RecoveryCandidate] = []

    @property
    def state(self) -> RecoveryState:
        return self._state

    @property
    def candidates(self) -> list[RecoveryCandidate]:
        return list(self._candidates)

    @property
    def suggested(self) -> RecoveryCandidate | None:
        return self._reconciler.select(self._candidates)

    @property
    def is_prompting(self) -> bool:
        return self._state is RecoveryState.PROMPTING

    def observe_live_count(self, count: int) -> RecoveryState:
        """Feed the caller's live application count; may start a scan."""
        if self._state is not RecoveryState.IDLE or count != 0 or self._dismissed:
            return self._state

        self._state = RecoveryState.SCANNING
        self._candidates = self._reconciler.candidates()
        if not self._candidates:
            self._state = RecoveryState.NO_CANDIDATES
            logger.info("No recoverable backup data found")
            return self._state

        self._state = RecoveryState.CANDIDATES_FOUND
        logger.info(f"Found {len(self._candidates)} recovery candidate(s)")
        return self._state

    def prompt(self) -> RecoveryState:
        """Mark the recovery offer as shown to the user."""
        if self._state is not RecoveryState.CANDIDATES_FOUND:
            raise InvalidTransition(f"Cannot prompt for recovery in state {self._state}")
        self._state = RecoveryState.PROMPTING
        return self._state

    def accept(self, candidate: RecoveryCandidate | None = None) -> list[dict[str, Any]]:
        if self._state is not RecoveryState.PROMPTING:
            raise InvalidTransition(f"Cannot accept recovery in state {self._state}")
        chosen = candidate or self.suggested
        applications = self._reconciler.accept(chosen)
        self._state = RecoveryState.ACCEPTED
        return applications

    def dismiss(self) -> None:
        if self._state is not RecoveryState.PROMPTING:
            raise InvalidTransition(f"Cannot dismiss recovery in state {self._state}")
        self._dismissed = True
        self._state = RecoveryState.DISMISSED
        logger.info("Recovery declined for this session")

    def new_session(self) -> None:
        self._state = RecoveryState.IDLE
        self._dismissed = False
        self._candidates = []
