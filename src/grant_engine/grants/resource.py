"""
Resource grant: raises pool resources (wounds, fate, corruption, insanity).

The amount comes from a formula: a flat integer, a dice expression such as
"1d5+2" or "2xTB", or a d10 lookup table. Values the player already rolled
can be passed in as data["rolledValues"] and are used verbatim.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from ..errors import FormulaError
from ..rules.resources import RESOURCES
from ..state.schema import (
    ApplyOptions,
    GrantResult,
    GrantSummary,
    ResourceEntry,
    ResourceGrantConfig,
    SummaryDetail,
)
from ..tools.formula import evaluate_formula, is_flat
from .base import BaseGrant

if TYPE_CHECKING:
    from ..state.actor import ActorDocument

logger = logging.getLogger(__name__)


class ResourceGrant(BaseGrant):
    """Grants wounds, fate, corruption or insanity."""

    TYPE: ClassVar[str] = "resource"
    ICON: ClassVar[str] = "icons/svg/heal.svg"
    TYPE_LABEL: ClassVar[str] = "Resources"
    config_model: ClassVar[type[ResourceGrantConfig]] = ResourceGrantConfig

    config: ResourceGrantConfig

    @property
    def resources(self) -> list[ResourceEntry]:
        return self.config.resources

    async def _roll(self, entry: ResourceEntry, actor: "ActorDocument") -> int:
        value = await evaluate_formula(entry.formula, actor, self.context.random)
        logger.debug(f"Evaluated {entry.type} formula {entry.formula!r} to {value}")
        return value

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

        selected = self._selected(data, [r.type for r in self.resources])
        rolled_values = (data or {}).get("rolledValues") or {}
        patch: dict[str, int] = {}
        # A supplied roll covers every entry of its type
        supplied: set[str] = set()

        for entry in self.resources:
            resource = RESOURCES.get(entry.type)
            if resource is None:
                result.errors.append(f"Invalid resource type: {entry.type}")
                continue

            if self._skip_unselected(
                result, entry, entry.type, selected, "resource", strict=not options.restore
            ):
                continue

            if entry.type in supplied:
                continue
            if entry.type in rolled_values:
                value = int(rolled_values[entry.type])
                supplied.add(entry.type)
            else:
                try:
                    value = await self._roll(entry, actor)
                except FormulaError as exc:
                    result.errors.append(f"Invalid {entry.type} formula: {exc}")
                    continue

            if value == 0:
                continue

            current = patch.get(resource.value_path, actor.get(resource.value_path, 0) or 0)
            patch[resource.value_path] = current + value
            record: dict[str, Any] = {
                "formula": entry.formula,
                "rolledValue": value,
                "previousValue": current,
            }

            if resource.affects_max:
                current_max = patch.get(resource.max_path, actor.get(resource.max_path, 0) or 0)
                patch[resource.max_path] = current_max + value
                record["previousMax"] = current_max

            earlier = result.applied.get(entry.type)
            if earlier:
                # Same type twice: one record holding the total and the first previous values
                earlier["rolledValue"] += value
                earlier["formula"] = f"{earlier['formula']}, {entry.formula}"
            else:
                result.applied[entry.type] = record
            result.notifications.append(f"{resource.label} {self._signed(value)}")

        if not options.dry_run and patch:
            await actor.update(patch)

        return self._finish(result)

    async def reverse(self, actor: "ActorDocument", applied: dict[str, Any]) -> dict[str, Any]:
        restore_data: dict[str, Any] = {"selected": [], "rolledValues": {}}
        patch: dict[str, int] = {}

        for resource_type, state in (applied or {}).items():
            resource = RESOURCES.get(resource_type)
            if resource is None or "rolledValue" not in state:
                continue
            value = state["rolledValue"]

            current = actor.get(resource.value_path, 0) or 0
            patch[resource.value_path] = current - value
            if resource.affects_max:
                current_max = actor.get(resource.max_path, 0) or 0
                patch[resource.max_path] = current_max - value

            restore_data["selected"].append(resource_type)
            restore_data["rolledValues"][resource_type] = value

        if patch:
            await actor.update(patch)

        return restore_data

    def get_automatic_value(self) -> dict[str, Any] | Literal[False]:
        if self.optional:
            return False
        for entry in self.resources:
            # Anything rolled wants the player to see the roll
            if entry.optional or not is_flat(entry.formula):
                return False
        return {"selected": [r.type for r in self.resources]}

    def validate(self) -> list[str]:
        errors = super().validate()

        if not self.resources:
            errors.append("Resource grant has no resources configured")

        for entry in self.resources:
            if entry.type not in RESOURCES:
                errors.append(f"Invalid resource type: {entry.type}")
            if entry.formula in ("", None):
                errors.append(f"Resource {entry.type} has no formula")

        return errors

    async def get_summary(self) -> GrantSummary:
        summary = await super().get_summary()

        for entry in self.resources:
            resource = RESOURCES.get(entry.type)
            summary.details.append(SummaryDetail(
                label=resource.label if resource else entry.type,
                value=str(entry.formula),
                optional=entry.optional,
                error=resource is None,
            ))

        return summary
