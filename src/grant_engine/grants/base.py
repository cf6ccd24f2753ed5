"""
Base contract shared by every grant variant.

A grant wraps an immutable definition (GrantDefinition) and exposes the
three-phase lifecycle:
- apply(actor, data, options) -> GrantResult whose .applied records what happened
- reverse(actor, applied) -> restore data; exact undo of .applied
- restore(actor, restore_data) -> GrantResult; re-gives a reversed grant

The applied record is never written back onto the definition. Callers keep
it (the manager stores it per grant id) and hand it back to reverse().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from ..state.resolver import MemoryCompendium, ReferenceResolver
from ..state.schema import (
    ApplyOptions,
    GrantDefinition,
    GrantEntry,
    GrantResult,
    GrantSummary,
    ItemData,
    ItemTemplate,
)
from ..tools.dice import RandomSource, SeededRandomSource

if TYPE_CHECKING:
    from ..state.actor import ActorDocument
    from ..state.event_bus import EventBus

FLAG_SCOPE = "rogue-trader"


@dataclass
class GrantContext:
    """
    Collaborators a grant needs besides the actor.

    Passed in explicitly; grants never reach for host globals.
    """
    resolver: ReferenceResolver = field(default_factory=MemoryCompendium)
    random: RandomSource = field(default_factory=SeededRandomSource)
    notifications: "EventBus | None" = None
    flag_scope: str = FLAG_SCOPE


class BaseGrant(ABC):
    """Abstract grant variant. Subclasses set TYPE, ICON and config_model."""

    TYPE: ClassVar[str] = "base"
    ICON: ClassVar[str] = "icons/svg/upgrade.svg"
    TYPE_LABEL: ClassVar[str] = "Grant"
    config_model: ClassVar[type[GrantDefinition]] = GrantDefinition

    def __init__(
        self,
        config: GrantDefinition,
        context: GrantContext | None = None,
        source: ItemData | None = None,
    ):
        self.config = config
        self.context = context or GrantContext()
        self.source = source  # Item carrying this grant, for provenance flags

    @classmethod
    def from_config(
        cls,
        config: GrantDefinition | dict[str, Any],
        context: GrantContext | None = None,
        source: ItemData | None = None,
    ) -> "BaseGrant":
        """Build from a definition or a raw wire-format dict."""
        if not isinstance(config, cls.config_model):
            raw = config.to_config() if isinstance(config, GrantDefinition) else config
            config = cls.config_model.model_validate(raw)
        return cls(config, context, source)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def optional(self) -> bool:
        return self.config.optional

    @property
    def display_label(self) -> str:
        return self.config.label or self.TYPE_LABEL

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id}>"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def apply(
        self,
        actor: "ActorDocument",
        data: dict[str, Any] | None = None,
        options: ApplyOptions | None = None,
    ) -> GrantResult:
        """
        Apply this grant to an actor.

        Args:
            actor: The actor receiving the grant
            data: Player input. data["selected"] lists the sub-entry keys to
                grant; when absent every sub-entry is selected.
            options: dry_run computes without writing; restore marks a
                call coming from restore()
        """

    @abstractmethod
    async def reverse(self, actor: "ActorDocument", applied: dict[str, Any]) -> dict[str, Any]:
        """Undo exactly what `applied` records. Returns data for restore()."""

    async def restore(self, actor: "ActorDocument", restore_data: dict[str, Any]) -> GrantResult:
        """Re-apply using the restore data as apply data."""
        return await self.apply(actor, restore_data, ApplyOptions(restore=True))

    def get_automatic_value(self) -> dict[str, Any] | Literal[False]:
        """
        Data for unattended application, or False when the player must choose.
        """
        if self.optional:
            return False
        return {}

    def validate(self) -> list[str]:
        """Structural problems with the configuration. Empty when valid."""
        return []

    async def get_summary(self) -> GrantSummary:
        return GrantSummary(
            id=self.id,
            type=self.TYPE,
            label=self.display_label,
            icon=self.ICON,
            hint=self.config.hint,
            optional=self.optional,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _begin(self, actor: "ActorDocument | None") -> GrantResult:
        result = GrantResult()
        if actor is None:
            result.fail("No actor provided")
        return result

    @staticmethod
    def _selected(data: dict[str, Any] | None, default: list[str]) -> list[str]:
        selected = (data or {}).get("selected")
        return list(default) if selected is None else list(selected)

    def _skip_unselected(
        self,
        result: GrantResult,
        entry: GrantEntry,
        key: str,
        selected: list[str],
        noun: str,
        strict: bool = True,
    ) -> bool:
        """
        True if the entry was not selected. Flags it when it was required,
        unless strict is off (restores only replay what was applied).
        """
        if key in selected:
            return False
        if strict and not entry.optional and not self.optional:
            result.errors.append(f"Required {noun} {key} not selected")
        return True

    @staticmethod
    def _finish(result: GrantResult) -> GrantResult:
        result.success = not result.errors
        return result

    def _create_grant_flags(self, source_uuid: str | None) -> dict[str, Any]:
        """Provenance flags linking a granted entity back to this grant."""
        source = self.source
        source_id = None
        if source is not None:
            source_id = source.uuid if isinstance(source, ItemTemplate) else getattr(source, "id", None)
        return {
            self.context.flag_scope: {
                "sourceId": source_uuid,
                "grantId": self.id,
                "grantType": self.TYPE,
                "grantedBy": source.name if source is not None else None,
                "grantedById": source_id,
                "autoGranted": True,
            }
        }

    @staticmethod
    def _signed(value: int) -> str:
        return f"+{value}" if value > 0 else str(value)
