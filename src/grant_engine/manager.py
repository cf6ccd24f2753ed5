"""
Grants manager.

Applies every grant carried by a source item (origin step, talent,
reward) to an actor, undoes and redoes them, and keeps the applied-state
ledger on the actor.

Everything runs strictly in sequence: grants within an item, items within
a batch, and grants carried by granted items (depth first, up to
max_depth levels). Application is best-effort: a failing grant is
reported and the rest carry on; nothing already written is rolled back.

Usage:
    manager = GrantsManager(resolver=compendium, random=SeededRandomSource(7))
    result = await manager.apply_item_grants(origin, actor)
    restore = await manager.reverse_item_grants(origin, actor, result.applied_state)
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import ValidationError

from . import ledger
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import GrantConfigError, GrantError
from .grants import BaseGrant, GrantContext, create_grant, validate_grant_config
from .migration import migrate_old_grants
from .state.event_bus import EventBus, EventType
from .state.resolver import MemoryCompendium, ReferenceResolver
from .state.schema import (
    AppliedGrantRecord,
    AppliedStateEntry,
    ApplyOptions,
    BatchApplicationResult,
    GrantsApplicationResult,
    ItemData,
    ItemGrantsSummary,
    ItemTemplate,
    OwnedItem,
    ReversalResult,
)
from .tools.dice import RandomSource, SeededRandomSource

if TYPE_CHECKING:
    from .state.actor import ActorDocument

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

ItemLike = ItemData | dict[str, Any]


def coerce_item(item: ItemLike | None) -> ItemData | None:
    """Accept an item model or its plain dict form."""
    if item is None or isinstance(item, ItemData):
        return item
    if "uuid" in item:
        return ItemTemplate.model_validate(item)
    if "_id" in item or "id" in item:
        return OwnedItem.model_validate(item)
    return ItemData.model_validate(item)


def _as_record(record: AppliedGrantRecord | dict[str, Any]) -> AppliedGrantRecord:
    if isinstance(record, AppliedGrantRecord):
        return record
    return AppliedGrantRecord.model_validate(record)


class GrantsManager:
    """
    Orchestrates grant application for source items.

    Collaborators are passed in, either one by one or as a ready-made
    GrantContext. Notifications and errors are also published on the
    event bus when one is given.
    """

    MAX_DEPTH: ClassVar[int] = 3

    def __init__(
        self,
        resolver: ReferenceResolver | None = None,
        random: RandomSource | None = None,
        notifications: EventBus | None = None,
        config: EngineConfig | None = None,
        context: GrantContext | None = None,
    ):
        self.config: EngineConfig = {**DEFAULT_CONFIG, **(config or {})}
        self.context = context or GrantContext(
            resolver=resolver or MemoryCompendium(),
            random=random or SeededRandomSource(),
            notifications=notifications,
            flag_scope=self.config["flag_scope"],
        )
        self.max_depth: int = self.config.get("max_depth", self.MAX_DEPTH)

    @property
    def scope(self) -> str:
        return self.context.flag_scope

    @property
    def notifications(self) -> EventBus | None:
        return self.context.notifications

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    @staticmethod
    def source_key(item: ItemData) -> str:
        """Ledger key for a source item: uuid, then id, then its name."""
        uuid = getattr(item, "uuid", None)
        item_id = getattr(item, "id", None)
        return uuid or item_id or f"item-{_WHITESPACE.sub('-', item.name)}"

    def migrate_old_grants(
        self,
        old_grants: dict[str, Any] | None,
        modifiers: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Legacy migration, back-filling uuids from the resolver when it can look up names."""
        lookup = getattr(self.context.resolver, "find_uuid", None)
        return migrate_old_grants(old_grants, modifiers, lookup=lookup)

    def extract_grants(self, item: ItemLike) -> list[dict[str, Any]]:
        """
        Grant configs carried by an item.

        New-format items hold a list under system.grantsV2. Legacy items
        hold system.grants and/or system.modifiers.characteristics, which
        are migrated on the fly. Configs without an id get a positional one
        so apply and reverse agree on them.
        """
        item = coerce_item(item)
        if item is None:
            return []
        system = item.system or {}

        if isinstance(system.get("grantsV2"), list):
            configs = [
                g.to_config() if hasattr(g, "to_config") else dict(g)
                for g in system["grantsV2"]
            ]
            for index, config in enumerate(configs):
                if not (config.get("_id") or config.get("id")):
                    config["_id"] = f"grant{index}"
            return configs

        modifiers = system.get("modifiers") or {}
        if system.get("grants") or modifiers.get("characteristics"):
            configs = self.migrate_old_grants(system.get("grants"), modifiers)
            for index, config in enumerate(configs):
                config["_id"] = f"legacy{index}"
            return configs

        return []

    def _create(self, config: dict[str, Any], source: ItemData | None) -> BaseGrant | None:
        return create_grant(config, self.context, source)

    @staticmethod
    def _selection_data(grant: BaseGrant, options: ApplyOptions) -> dict[str, Any]:
        automatic = grant.get_automatic_value()
        if automatic is not False:
            data = dict(automatic)
        else:
            data = dict(options.selections.get(grant.id) or {})

        if grant.TYPE == "resource" and options.rolled_values:
            data["rolledValues"] = {**options.rolled_values, **(data.get("rolledValues") or {})}
        return data

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    async def apply_item_grants(
        self,
        item: ItemLike,
        actor: "ActorDocument",
        options: ApplyOptions | None = None,
    ) -> GrantsApplicationResult:
        """
        Apply every grant on an item.

        Selection data per grant is its automatic value when it has one,
        otherwise options.selections[grant id]. Items created by item
        grants that carry grants of their own are processed at depth + 1.
        """
        options = options or ApplyOptions()
        result = GrantsApplicationResult()
        item = coerce_item(item)

        if item is None or actor is None:
            result.success = False
            result.errors.append("Missing item or actor")
            return result

        source_key = self.source_key(item)
        result.source_key = source_key
        depth = options.depth

        if not options.force and not options.dry_run and self.has_applied_grants(actor, source_key):
            logger.info(f"Grants from {item.name} already applied, skipping")
            existing = self.load_applied_state(actor, source_key)
            result.applied_state = dict(existing.grants) if existing else {}
            result.skipped = True
            result.notifications.append(f"Grants from {item.name} already applied")
            self._publish(actor, result.notifications, result.errors)
            return result

        if depth >= self.max_depth:
            logger.warning(f"Max grant depth ({self.max_depth}) reached at {item.name}, not recursing")
            return result

        configs = self.extract_grants(item)
        if not configs:
            return result

        logger.info(f"Applying {len(configs)} grants from {item.name} to {actor.name}")

        for config in configs:
            grant = self._create(config, item)
            if grant is None:
                result.errors.append(f'Failed to create grant of type "{config.get("type")}"')
                result.success = False
                continue

            data = self._selection_data(grant, options)
            try:
                grant_result = await grant.apply(actor, data, options)
            except GrantError as exc:
                logger.exception(f"Grant {grant.id} on {item.name} failed")
                result.errors.append(f"{grant.display_label}: {exc}")
                result.success = False
                continue
            except Exception as exc:
                logger.exception(f"Unexpected error applying grant {grant.id} on {item.name}")
                result.errors.append(f"Failed to apply grant {grant.id}: {exc}")
                result.success = False
                continue

            result.applied_state[grant.id] = AppliedGrantRecord(
                type=grant.TYPE,
                applied=grant_result.applied,
            )
            result.notifications.extend(grant_result.notifications)
            result.errors.extend(grant_result.errors)
            if not grant_result.success:
                result.success = False

            if grant.TYPE == "item" and grant_result.applied and not options.dry_run:
                nested_options = options.model_copy(update={"depth": depth + 1, "force": False})
                result.nested.extend(
                    await self._process_nested_grants(actor, grant_result.applied, nested_options)
                )

        save_state = options.save_state and self.config.get("save_state", True)
        if save_state and not options.dry_run and depth == 0 and result.applied_state:
            await self.save_applied_state(
                actor,
                source_key,
                result.applied_state,
                source_name=item.name,
                source_type=item.type,
            )

        self._publish(actor, result.notifications, result.errors)
        if not options.dry_run and self.notifications is not None:
            self.notifications.emit(
                EventType.GRANTS_APPLIED,
                actor_id=actor.id,
                source_key=source_key,
                source_name=item.name,
                grants=list(result.applied_state),
            )

        return result

    async def _process_nested_grants(
        self,
        actor: "ActorDocument",
        applied_items: dict[str, str],
        options: ApplyOptions,
    ) -> list[GrantsApplicationResult]:
        """Apply grants carried by items an item grant just created."""
        results = []
        for item_id in applied_items.values():
            owned = actor.items.get(item_id)
            if owned is None or not self.extract_grants(owned):
                continue
            logger.info(f"Processing nested grants from {owned.name} at depth {options.depth}")
            results.append(await self.apply_item_grants(owned, actor, options))
        return results

    async def apply_batch_grants(
        self,
        items: list[ItemLike],
        actor: "ActorDocument",
        options: ApplyOptions | None = None,
    ) -> BatchApplicationResult:
        """
        Apply grants from several items, one after another, so later items
        see what earlier ones did. With reverse_existing, the whole ledger
        is reversed first and every item is applied with force.
        """
        options = options or ApplyOptions()
        result = BatchApplicationResult()

        if not isinstance(items, (list, tuple)) or actor is None:
            result.success = False
            result.errors.append("Invalid items array or actor")
            return result

        if options.reverse_existing:
            logger.info("Reversing existing grants before batch apply")
            reversal = await self.reverse_all_applied_grants(actor)
            result.reversed = reversal.reversed
            result.notifications.extend(reversal.notifications)
            result.errors.extend(reversal.errors)
            if not reversal.success:
                logger.warning("Some grants failed to reverse, continuing anyway")

        item_options = options.model_copy(update={
            "force": options.force or options.reverse_existing,
            "reverse_existing": False,
            "depth": 0,
        })

        for raw in items:
            item = coerce_item(raw)
            item_result = await self.apply_item_grants(item, actor, item_options)
            key = self.source_key(item) if item is not None else "item-missing"
            result.applied_state[key] = item_result.applied_state
            result.notifications.extend(item_result.notifications)
            result.errors.extend(item_result.errors)
            if not item_result.success:
                result.success = False

        return result

    # -------------------------------------------------------------------------
    # Reverse / restore
    # -------------------------------------------------------------------------

    async def reverse_item_grants(
        self,
        item: ItemLike,
        actor: "ActorDocument",
        applied_state: dict[str, AppliedGrantRecord | dict[str, Any]],
    ) -> ReversalResult:
        """
        Undo an item's grants, last grant first.

        result.reversed maps grant id to the restore data restore_item_grants
        needs to give them back.
        """
        result = ReversalResult()
        item = coerce_item(item)
        if item is None or actor is None or not applied_state:
            return result

        for config in reversed(self.extract_grants(item)):
            grant_id = config.get("_id") or config.get("id")
            raw = applied_state.get(grant_id)
            if raw is None:
                continue

            grant = self._create(config, item)
            if grant is None:
                continue

            try:
                record = _as_record(raw)
                result.reversed[grant_id] = await grant.reverse(actor, record.applied)
            except (GrantError, ValidationError) as exc:
                logger.exception(f"Could not reverse grant {grant_id} on {item.name}")
                result.errors.append(f"Failed to reverse grant {grant_id}: {exc}")
            except Exception as exc:
                logger.exception(f"Unexpected error reversing grant {grant_id} on {item.name}")
                result.errors.append(f"Failed to reverse grant {grant_id}: {exc}")

        result.success = not result.errors
        self._publish(actor, result.notifications, result.errors)
        if self.notifications is not None:
            self.notifications.emit(
                EventType.GRANTS_REVERSED,
                actor_id=actor.id,
                source_key=self.source_key(item),
                grants=list(result.reversed),
            )
        return result

    async def restore_item_grants(
        self,
        item: ItemLike,
        actor: "ActorDocument",
        restore_data: dict[str, Any],
    ) -> GrantsApplicationResult:
        """Re-give grants reversed by reverse_item_grants, in original order."""
        result = GrantsApplicationResult()
        item = coerce_item(item)
        if item is None or actor is None:
            result.success = False
            result.errors.append("Missing item or actor")
            return result

        result.source_key = self.source_key(item)

        for config in self.extract_grants(item):
            grant_id = config.get("_id") or config.get("id")
            data = (restore_data or {}).get(grant_id)
            if data is None:
                continue

            grant = self._create(config, item)
            if grant is None:
                continue

            try:
                grant_result = await grant.restore(actor, data)
            except Exception as exc:
                logger.exception(f"Could not restore grant {grant_id} on {item.name}")
                result.errors.append(f"Failed to restore grant {grant_id}: {exc}")
                continue

            result.applied_state[grant.id] = AppliedGrantRecord(
                type=grant.TYPE,
                applied=grant_result.applied,
            )
            result.notifications.extend(grant_result.notifications)
            result.errors.extend(grant_result.errors)

        result.success = not result.errors
        if self.config.get("save_state", True) and result.applied_state:
            await self.save_applied_state(
                actor,
                result.source_key,
                result.applied_state,
                source_name=item.name,
                source_type=item.type,
            )

        self._publish(actor, result.notifications, result.errors)
        return result

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    async def save_applied_state(
        self,
        actor: "ActorDocument",
        source_key: str,
        grants: dict[str, AppliedGrantRecord],
        source_name: str = "",
        source_type: str = "unknown",
    ) -> AppliedStateEntry | None:
        return await ledger.save_applied_state(
            actor, source_key, grants, source_name, source_type, scope=self.scope
        )

    def load_applied_state(
        self,
        actor: "ActorDocument",
        source_key: str | None = None,
    ) -> AppliedStateEntry | dict[str, AppliedStateEntry] | None:
        """One source's ledger entry, or every entry when no key is given."""
        if source_key is None:
            return ledger.load_all_applied_state(actor, scope=self.scope)
        return ledger.load_applied_state(actor, source_key, scope=self.scope)

    async def clear_applied_state(self, actor: "ActorDocument", source_key: str | None = None) -> None:
        await ledger.clear_applied_state(actor, source_key, scope=self.scope)

    def has_applied_grants(self, actor: "ActorDocument", source_key: str) -> bool:
        return ledger.has_applied_grants(actor, source_key, scope=self.scope)

    async def reverse_applied_grants(self, actor: "ActorDocument", source_key: str) -> ReversalResult:
        """
        Undo everything the ledger records for one source, then forget it.

        Works from the ledger alone, without the source item.
        """
        result = ReversalResult()
        if actor is None or not source_key:
            result.success = False
            result.errors.append("Missing actor or sourceKey")
            return result

        entry = self.load_applied_state(actor, source_key)
        if entry is None:
            result.notifications.append(f"No applied grants found for {source_key}")
            return result

        logger.info(f"Reversing grants from {entry.source_name}")

        for grant_id, record in reversed(list(entry.grants.items())):
            try:
                result.reversed[grant_id] = await self._reverse_record(actor, grant_id, record)
            except Exception as exc:
                logger.exception(f"Failed to reverse grant {grant_id} from {entry.source_name}")
                result.errors.append(f"Failed to reverse grant {grant_id}: {exc}")

        result.notifications.append(f"Reversed grants from {entry.source_name}")
        await self.clear_applied_state(actor, source_key)

        result.success = not result.errors
        self._publish(actor, result.notifications, result.errors)
        if self.notifications is not None:
            self.notifications.emit(
                EventType.GRANTS_REVERSED,
                actor_id=actor.id,
                source_key=source_key,
                grants=list(result.reversed),
            )
        return result

    async def reverse_all_applied_grants(self, actor: "ActorDocument") -> ReversalResult:
        """Undo every ledger entry, most recent source first."""
        result = ReversalResult()
        if actor is None:
            result.success = False
            result.errors.append("Missing actor")
            return result

        entries = ledger.load_all_applied_state(actor, scope=self.scope)
        if not entries:
            result.notifications.append("No applied grants to reverse")
            return result

        logger.info(f"Reversing all applied grants ({len(entries)} sources)")

        for source_key in reversed(list(entries)):
            source_result = await self.reverse_applied_grants(actor, source_key)
            result.reversed[source_key] = source_result.reversed
            result.notifications.extend(source_result.notifications)
            result.errors.extend(source_result.errors)
            if not source_result.success:
                result.success = False

        return result

    async def _reverse_record(
        self,
        actor: "ActorDocument",
        grant_id: str,
        record: AppliedGrantRecord,
    ) -> dict[str, Any]:
        """
        Reverse one ledger record without its grant config.

        Every variant but choice undoes from its applied map alone. Choice
        records carry each nested grant's type, so they are walked here.
        """
        if record.type == "choice":
            applied = record.applied or {}
            undone = []
            for key, nested in reversed(list((applied.get("grantResults") or {}).items())):
                nested_record = _as_record(nested)
                undone.append((key, {
                    "type": nested_record.type,
                    "data": await self._reverse_record(actor, key, nested_record),
                }))
            return {
                "selected": list(applied.get("selectedOptions") or []),
                "grantResults": dict(reversed(undone)),
            }

        grant = self._create({"_id": grant_id, "type": record.type}, None)
        if grant is None:
            raise GrantConfigError(f"Unknown grant type: {record.type}")
        return await grant.reverse(actor, record.applied)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def validate_item_grants(self, item: ItemLike) -> list[str]:
        """Validation errors for every grant on an item."""
        errors = []
        for config in self.extract_grants(item):
            errors.extend(validate_grant_config(config))
        return errors

    async def get_grants_summary(self, item: ItemLike) -> ItemGrantsSummary:
        """Preview of what an item would grant."""
        item = coerce_item(item)
        summary = ItemGrantsSummary(item=item.name if item else "")
        for config in self.extract_grants(item):
            grant = self._create(config, item)
            if grant is not None:
                summary.grants.append(await grant.get_summary())
        return summary

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _publish(self, actor: "ActorDocument", notifications: list[str], errors: list[str]) -> None:
        bus = self.notifications
        if bus is None or not self.config.get("emit_notifications", True):
            return
        for message in notifications:
            bus.notify(message, actor_id=actor.id)
        for message in errors:
            bus.warn(message, actor_id=actor.id)
