"""
Item grant: gives the actor copies of referenced item templates.

Templates are addressed by uuid and snapshotted at apply time. The applied
record maps each source uuid to the id of the entity created from it, so
reverse() deletes exactly those entities even if the player edited them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from ..state.actor import EMBEDDED_ITEM
from ..state.paths import merge_object
from ..state.schema import (
    ApplyOptions,
    GrantResult,
    GrantSummary,
    ItemEntry,
    ItemGrantConfig,
    ItemTemplate,
    SummaryDetail,
    generate_id,
)
from .base import BaseGrant

if TYPE_CHECKING:
    from ..state.actor import ActorDocument

logger = logging.getLogger(__name__)


class ItemGrant(BaseGrant):
    """Grants talents, traits and equipment."""

    TYPE: ClassVar[str] = "item"
    ICON: ClassVar[str] = "icons/svg/item-bag.svg"
    TYPE_LABEL: ClassVar[str] = "Items"
    config_model: ClassVar[type[ItemGrantConfig]] = ItemGrantConfig

    VALID_TYPES: ClassVar[frozenset[str]] = frozenset({
        "talent", "trait", "weapon", "armour", "gear",
        "ammunition", "cybernetic", "forceField", "specialAbility",
    })

    config: ItemGrantConfig

    @property
    def items(self) -> list[ItemEntry]:
        return self.config.items

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

        if not self.items:
            result.notifications.append("Item grant has no items to apply")
            return result

        selected = self._selected(data, [i.uuid for i in self.items])
        to_create: list[tuple[str, dict[str, Any]]] = []
        pending: list[ItemTemplate] = []

        for entry in self.items:
            if not entry.uuid:
                # Legacy placeholder with no reference to follow
                if entry.legacy_name:
                    result.notifications.append(
                        f'Skipped "{entry.legacy_name}" - no UUID mapping available'
                    )
                continue

            if self._skip_unselected(
                result, entry, entry.uuid, selected, "item", strict=not options.restore
            ):
                continue

            template = await self.context.resolver.resolve(entry.uuid)
            if template is None:
                result.errors.append(f"Could not find item: {entry.uuid}")
                continue

            if template.type not in self.VALID_TYPES:
                result.errors.append(f'Invalid item type "{template.type}" for {template.name}')
                continue

            if self._is_duplicate(actor, template, pending):
                result.notifications.append(f"{template.name} already exists, skipping")
                continue

            pending.append(template)
            to_create.append((entry.uuid, self._create_item_data(template, entry)))

        if options.dry_run:
            for _, item_data in to_create:
                result.notifications.append(f"Would grant: {item_data['name']}")
        elif to_create:
            created = await actor.create_embedded(EMBEDDED_ITEM, [d for _, d in to_create])
            for (uuid, _), item in zip(to_create, created):
                result.applied[uuid] = item.id
                result.notifications.append(f"Granted: {item.name}")
            logger.debug(f"Created {len(created)} items on {actor.name}")

        return self._finish(result)

    async def reverse(self, actor: "ActorDocument", applied: dict[str, Any]) -> dict[str, Any]:
        restore_data: dict[str, Any] = {"items": []}
        ids_to_delete = []

        for uuid, item_id in (applied or {}).items():
            item = actor.items.get(item_id)
            if item is None:
                continue
            restore_data["items"].append({"uuid": uuid, "data": item.to_object()})
            ids_to_delete.append(item_id)

        if ids_to_delete:
            await actor.delete_embedded(EMBEDDED_ITEM, ids_to_delete)

        return restore_data

    async def restore(self, actor: "ActorDocument", restore_data: dict[str, Any]) -> GrantResult:
        """Re-create the snapshots taken by reverse(), edits included."""
        result = self._begin(actor)
        snapshots = (restore_data or {}).get("items") or []
        if not result.success or not snapshots:
            return result

        created = await actor.create_embedded(EMBEDDED_ITEM, [s["data"] for s in snapshots])
        for snapshot, item in zip(snapshots, created):
            result.applied[snapshot["uuid"]] = item.id
            result.notifications.append(f"Restored: {item.name}")

        return self._finish(result)

    def get_automatic_value(self) -> dict[str, Any] | Literal[False]:
        if self.optional or any(i.optional for i in self.items):
            return False
        return {"selected": [i.uuid for i in self.items]}

    def validate(self) -> list[str]:
        errors = super().validate()

        if not self.items:
            errors.append("Item grant has no items configured")

        for entry in self.items:
            if entry.uuid:
                continue
            if entry.legacy_name:
                errors.append(f'Item grant entry "{entry.legacy_name}" has no UUID')
            else:
                errors.append("Item grant entry missing UUID")

        return errors

    async def get_summary(self) -> GrantSummary:
        summary = await super().get_summary()

        for entry in self.items:
            template = await self.context.resolver.resolve(entry.uuid)
            if template is not None:
                summary.details.append(SummaryDetail(
                    label=template.name,
                    value=template.type,
                    optional=entry.optional,
                    img=template.img or None,
                ))
            else:
                summary.details.append(SummaryDetail(
                    label=entry.uuid or entry.legacy_name or "(missing)",
                    value="Not found",
                    optional=entry.optional,
                    error=True,
                ))

        return summary

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _same_item(kind: str, name: str, specialization: Any, template: ItemTemplate) -> bool:
        if kind != template.type or name != template.name:
            return False
        if kind != "talent":
            return True
        return (specialization or "") == (template.system.get("specialization") or "")

    def _is_duplicate(
        self,
        actor: "ActorDocument",
        template: ItemTemplate,
        pending: list[ItemTemplate],
    ) -> bool:
        """Same kind and name (and specialization, for talents) already owned or queued."""
        for owned in actor.items:
            if self._same_item(owned.type, owned.name, owned.system.get("specialization"), template):
                return True
        return any(
            self._same_item(p.type, p.name, p.system.get("specialization"), template)
            for p in pending
        )

    def _create_item_data(self, template: ItemTemplate, entry: ItemEntry) -> dict[str, Any]:
        item_data = template.to_object()

        if entry.overrides:
            merge_object(item_data, entry.overrides)

        merge_object(item_data.setdefault("flags", {}), self._create_grant_flags(entry.uuid))
        item_data["_id"] = generate_id()
        return item_data
