"""Error taxonomy for the operations console.

- AuthorizationError: identity missing or not on the allow-list.
- ConfigurationError: store credentials missing at startup (fatal).
- StoreWriteError: a create/replace/patch/remove against the store failed.
- FormValidationError: local form validation failed; nothing was written.
- InvalidStageTransitionError: a pipeline or board move is not a single
  adjacent step (or starts from a terminal stage).

Dangling weak references are deliberately absent: lookups return None.
"""

from __future__ import annotations

from typing import Any


class AuthorizationError(Exception):
    """Raised when an action needs an authorized session and there is none."""

    def __init__(self, email: str | None, reason: str) -> None:
        self.email = email
        self.reason = reason
        super().__init__(f"Access denied ({reason}) for {email or 'anonymous'}")


class ConfigurationError(Exception):
    """Raised when required store credentials are not configured."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "Store is not configured. Set the following variables in the "
            f"environment or .env file: {', '.join(missing)}"
        )


class StoreWriteError(Exception):
    """Raised when a write against the realtime store fails.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, path: str, detail: str) -> None:
        self.operation = operation
        self.path = path
        self.detail = detail
        super().__init__(f"Store {operation} failed at '{path}': {detail}")


class FormValidationError(ValueError):
    """Raised when form input fails local validation.

    Attributes:
        errors: Mapping of field name to a human-readable message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        summary = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        super().__init__(f"Invalid form input: {summary}")

    @classmethod
    def from_pydantic(cls, exc: Any) -> FormValidationError:
        """Build from a pydantic ValidationError, keyed by top-level field."""
        errors: dict[str, str] = {}
        for item in exc.errors():
            loc = item.get("loc") or ("__root__",)
            errors.setdefault(str(loc[0]), item.get("msg", "invalid value"))
        return cls(errors)


class InvalidStageTransitionError(ValueError):
    """Raised when a stage transition violates the ordering rules."""

    def __init__(self, from_stage: Any, to_stage: Any | None) -> None:
        self.from_stage = from_stage
        self.to_stage = to_stage
        target = getattr(to_stage, "value", to_stage) if to_stage is not None else "none"
        super().__init__(
            f"Invalid stage transition: {getattr(from_stage, 'value', from_stage)} -> {target}"
        )
