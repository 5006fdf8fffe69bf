"""Errors raised by the notification domain."""

from __future__ import annotations


class RuleNotFoundError(ValueError):
    """Raised when a notification rule identifier is unknown."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Notification rule '{rule_id}' not found")
        self.rule_id = rule_id


class InvalidRuleError(ValueError):
    """Raised when a rule definition or update carries unsupported values."""


class StaleVersionError(ValueError):
    """Raised when a key-value entry changed since it was read."""

    def __init__(self, key: str, expected: int | None, actual: int | None) -> None:
        super().__init__(
            f"Entry '{key}' is at version {actual}, expected {expected}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual


class BackupIntegrityError(ValueError):
    """Raised when a backup document fails its integrity verification."""


__all__ = [
    "BackupIntegrityError",
    "InvalidRuleError",
    "RuleNotFoundError",
    "StaleVersionError",
]
