"""Custom exceptions for outreach_tracker."""


class OutreachTrackerError(Exception):
    """Base exception for all outreach_tracker errors."""


class StorageError(OutreachTrackerError):
    """A collection could not be read from or written to storage."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Storage error ({key}): {message}")
