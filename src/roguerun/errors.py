from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base error for run engine exceptions.

    Engine errors are synchronous and never retried by the engine itself; the
    run snapshot handed to the failing call is left untouched.
    """


class InvalidTransition(EngineError):
    """Raised when an action is not valid in the run's current state."""

    def __init__(self, current: object, target: Optional[object] = None, action: Optional[str] = None) -> None:
        self.current = current
        self.target = target
        self.action = action
        if target is not None:
            msg = f"Transition {_name(current)} -> {_name(target)} is not allowed"
        else:
            msg = f"Action '{action}' is not allowed in state {_name(current)}"
        super().__init__(msg)


class InvalidChoice(EngineError):
    """Raised when an event choice or blessing id does not apply to the current node."""


class ExhaustedResource(EngineError):
    """Raised when an action needs a resource (e.g. the healing potion) that is unavailable."""


class InternalInvariant(EngineError):
    """Raised when an internal invariant is broken (negative HP, impossible draw, ...)."""


class ConfigError(EngineError):
    """Raised when configuration or catalog data cannot be loaded."""


def _name(state: object) -> str:
    return getattr(state, "value", str(state))
