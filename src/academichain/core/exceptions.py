"""AcademiChain exception hierarchy."""

from __future__ import annotations

from typing import Any


class AcademiChainError(Exception):
    """Base exception for all AcademiChain errors."""


class ConfigError(AcademiChainError):
    """Raised when the configuration is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file does not exist."""


class RemoteCallError(AcademiChainError):
    """
    A gateway call failed: non-2xx response or transport failure.

    ``status`` is None when no HTTP response was received.
    """

    def __init__(self, message: str, *, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            return f"{base} (HTTP {self.status})"
        return base


class RegistrationError(RemoteCallError):
    """An automation rule was not accepted by the issue tracker."""

    def __init__(
        self, message: str, *, rule_name: str = "", status: int | None = None, body: str = ""
    ) -> None:
        super().__init__(message, status=status, body=body)
        self.rule_name = rule_name


class InvalidTransitionError(AcademiChainError):
    """A proposal approval transition is not permitted for this state and role."""

    def __init__(self, from_status: Any, action: Any, role: Any) -> None:
        self.from_status = from_status
        self.action = action
        self.role = role
        super().__init__(
            f"Cannot {_value(action)} a proposal in state {_value(from_status)!r} "
            f"as {_value(role)}"
        )


class ValidationError(AcademiChainError):
    """An operation payload is malformed (missing issueKey, bad grade, ...)."""


def _value(v: Any) -> Any:
    return getattr(v, "value", v)
