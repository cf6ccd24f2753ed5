"""
Pool resources a grant can raise.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceDef:
    """Where a pool resource lives on the actor."""
    label: str
    value_path: str
    max_path: str | None = None  # Set when a grant raises the maximum too

    @property
    def affects_max(self) -> bool:
        return self.max_path is not None


RESOURCES: dict[str, ResourceDef] = {
    "wounds": ResourceDef("Wounds", "system.wounds.value", "system.wounds.max"),
    "fate": ResourceDef("Fate", "system.fate.value", "system.fate.max"),
    "corruption": ResourceDef("Corruption", "system.corruption.value"),
    "insanity": ResourceDef("Insanity", "system.insanity.value"),
}
