"""
Exception types for the grant engine.

These are raised inside the engine and converted to error strings at the
apply/reverse boundary. Callers of GrantsManager never see them.
"""


class GrantError(Exception):
    """Base class for grant engine failures."""


class GrantConfigError(GrantError):
    """A grant configuration is structurally invalid."""


class FormulaError(GrantError):
    """A resource formula could not be tokenized, parsed or evaluated."""

    def __init__(self, message: str, formula: str = "", position: int | None = None):
        self.formula = formula
        self.position = position
        if position is not None:
            message = f"{message} at position {position} in {formula!r}"
        elif formula:
            message = f"{message} in {formula!r}"
        super().__init__(message)


class SkillResolutionError(GrantError):
    """A free-text skill key has no canonical schema key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown skill: {key}")
