"""Characteristic grant: adds a signed delta to a characteristic's advance."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Literal

from ..rules.characteristics import CHARACTERISTICS, characteristic_label
from ..state.schema import (
    ApplyOptions,
    CharacteristicEntry,
    CharacteristicGrantConfig,
    GrantResult,
    GrantSummary,
    SummaryDetail,
)
from .base import BaseGrant

if TYPE_CHECKING:
    from ..state.actor import ActorDocument


def _advance_path(key: str) -> str:
    return f"system.characteristics.{key}.advance"


class CharacteristicGrant(BaseGrant):
    """Grants characteristic advances."""

    TYPE: ClassVar[str] = "characteristic"
    ICON: ClassVar[str] = "icons/svg/upgrade.svg"
    TYPE_LABEL: ClassVar[str] = "Characteristics"
    config_model: ClassVar[type[CharacteristicGrantConfig]] = CharacteristicGrantConfig

    VALID_CHARACTERISTICS: ClassVar[frozenset[str]] = frozenset(CHARACTERISTICS)

    config: CharacteristicGrantConfig

    @property
    def characteristics(self) -> list[CharacteristicEntry]:
        return self.config.characteristics

    async def apply(
        self,
        actor: "ActorDocument",
        data: dict[str, Any] | None = None,
        options: ApplyOptions | None = None,
    ) -> GrantResult:
        options = options or ApplyOptions()
        result = self._begin(actor)
        if not result.success:
            return result

        selected = self._selected(data, [c.key for c in self.characteristics])
        patch: dict[str, int] = {}

        for entry in self.characteristics:
            key = entry.key

            if key not in self.VALID_CHARACTERISTICS:
                result.errors.append(f"Invalid characteristic: {key}")
                continue

            if self._skip_unselected(
                result, entry, key, selected, "characteristic", strict=not options.restore
            ):
                continue

            if entry.value == 0:
                continue

            # Two entries for the same key stack
            current = patch.get(_advance_path(key), actor.get(_advance_path(key), 0) or 0)
            new_value = current + entry.value
            patch[_advance_path(key)] = new_value

            result.applied[key] = {
                "previousValue": result.applied.get(key, {}).get("previousValue", current),
                "appliedValue": result.applied.get(key, {}).get("appliedValue", 0) + entry.value,
                "newValue": new_value,
            }
            result.notifications.append(f"{characteristic_label(key)} {self._signed(entry.value)}")

        if not options.dry_run and patch:
            await actor.update(patch)

        return self._finish(result)

    async def reverse(self, actor: "ActorDocument", applied: dict[str, Any]) -> dict[str, Any]:
        restore_data: dict[str, Any] = {"selected": [], "characteristics": {}}
        patch: dict[str, int] = {}

        for key, state in (applied or {}).items():
            if key not in self.VALID_CHARACTERISTICS or "appliedValue" not in state:
                continue
            current = actor.get(_advance_path(key), 0) or 0
            patch[_advance_path(key)] = current - state["appliedValue"]
            restore_data["selected"].append(key)
            restore_data["characteristics"][key] = state

        if patch:
            await actor.update(patch)

        return restore_data

    def get_automatic_value(self) -> dict[str, Any] | Literal[False]:
        if self.optional or any(c.optional for c in self.characteristics):
            return False
        return {"selected": [c.key for c in self.characteristics]}

    def validate(self) -> list[str]:
        errors = super().validate()

        if not self.characteristics:
            errors.append("Characteristic grant has no characteristics configured")

        for entry in self.characteristics:
            if entry.key not in self.VALID_CHARACTERISTICS:
                errors.append(f"Invalid characteristic key: {entry.key}")

        return errors

    async def get_summary(self) -> GrantSummary:
        summary = await super().get_summary()

        for entry in self.characteristics:
            summary.details.append(SummaryDetail(
                label=characteristic_label(entry.key),
                value=self._signed(entry.value),
                optional=entry.optional,
                error=entry.key not in self.VALID_CHARACTERISTICS,
            ))

        return summary
