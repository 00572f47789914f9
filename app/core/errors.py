"""Backup engine exceptions."""

from __future__ import annotations


class BackupError(Exception):
    """Base class for all backup engine errors."""


class StorageFull(BackupError):
    """A write was rejected because the store is at or near capacity."""

    def __init__(self, message: str = "", needed_bytes: int = 0, available_bytes: int = 0) -> None:
        super().__init__(message or "Local backup storage is full")
        self.needed_bytes = needed_bytes
        self.available_bytes = available_bytes


class StorageUnavailable(BackupError):
    """The underlying persistence is inaccessible."""


class CorruptRecord(BackupError):
    """A stored entry could not be parsed or normalized."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"{key}: {reason}")
        self.key = key
        self.reason = reason


class InvalidCandidate(BackupError):
    """A recovery candidate failed validation before being accepted."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid recovery data: " + ", ".join(errors))
        self.errors = errors


class InvalidTransition(BackupError):
    """The recovery flow was driven out of order."""
