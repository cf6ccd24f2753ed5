"""
Skill grant: raises skill training along known < trained < plus10 < plus20.

Upgrades are monotonic. A grant asking for a level the actor already has
(or exceeds) is a no-op with a notification; the engine never downgrades.

Standard skills store their training booleans at
system.skills.<key>.{trained,plus10,plus20}. Specialist skills keep one
entry per specialization in system.skills.<key>.entries, matched by
case-insensitive name; a missing entry is created rather than upgraded.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from ..errors import SkillResolutionError
from ..rules.skills import (
    SKILL_KEY_TO_NAME,
    TrainingLevel,
    is_specialist,
    level_flags,
    level_from_flags,
    resolve_skill_key,
)
from ..state.schema import (
    ApplyOptions,
    GrantResult,
    GrantSummary,
    SkillEntry,
    SkillGrantConfig,
    SummaryDetail,
)
from .base import BaseGrant

if TYPE_CHECKING:
    from ..state.actor import ActorDocument

logger = logging.getLogger(__name__)

_VALID_LEVELS = {level.value for level in TrainingLevel}


def _skill_path(key: str) -> str:
    return f"system.skills.{key}"


def _find_entry(entries: list[dict], specialization: str) -> int | None:
    wanted = specialization.strip().lower()
    for index, entry in enumerate(entries):
        if str(entry.get("name", "")).strip().lower() == wanted:
            return index
    return None


class SkillGrant(BaseGrant):
    """Grants or upgrades skill training."""

    TYPE: ClassVar[str] = "skill"
    ICON: ClassVar[str] = "icons/svg/book.svg"
    TYPE_LABEL: ClassVar[str] = "Skills"
    config_model: ClassVar[type[SkillGrantConfig]] = SkillGrantConfig

    config: SkillGrantConfig

    @property
    def skills(self) -> list[SkillEntry]:
        return self.config.skills

    def _check_entry(self, entry: SkillEntry) -> tuple[str, TrainingLevel]:
        """
        Resolve an entry to (schema key, level).

        Raises:
            SkillResolutionError: unknown skill
            ValueError: bad level or specialization mismatch
        """
        schema_key = resolve_skill_key(entry.key)
        if entry.level not in _VALID_LEVELS:
            raise ValueError(f'Invalid training level "{entry.level}" for {entry.key}')
        if is_specialist(schema_key) and not entry.specialization:
            raise ValueError(f"Specialist skill {SKILL_KEY_TO_NAME[schema_key]} requires a specialization")
        if entry.specialization and not is_specialist(schema_key):
            raise ValueError(f"Skill {SKILL_KEY_TO_NAME[schema_key]} does not take a specialization")
        return schema_key, TrainingLevel(entry.level)

    @staticmethod
    def _display(schema_key: str, specialization: str = "") -> str:
        name = SKILL_KEY_TO_NAME.get(schema_key, schema_key)
        return f"{name} ({specialization})" if specialization else name

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

        selected = self._selected(data, [s.grant_key for s in self.skills])
        patch: dict[str, Any] = {}
        # Working copies of specialist entry lists, so two grants to the
        # same specialist skill see each other's changes
        entry_lists: dict[str, list[dict]] = {}
        # Same for standard skills: the highest level queued so far per key
        levels: dict[str, TrainingLevel] = {}

        for entry in self.skills:
            grant_key = entry.grant_key

            if self._skip_unselected(
                result, entry, grant_key, selected, "skill", strict=not options.restore
            ):
                continue

            try:
                schema_key, target = self._check_entry(entry)
            except (SkillResolutionError, ValueError) as exc:
                result.errors.append(str(exc))
                continue

            display = self._display(schema_key, entry.specialization)

            if is_specialist(schema_key):
                entries = entry_lists.get(schema_key)
                if entries is None:
                    entries = copy.deepcopy(actor.get(f"{_skill_path(schema_key)}.entries") or [])
                    entry_lists[schema_key] = entries
                index = _find_entry(entries, entry.specialization)

                if index is None:
                    entries.append({"name": entry.specialization, **level_flags(target)})
                    result.applied[grant_key] = {
                        "schemaKey": schema_key,
                        "specialization": entry.specialization,
                        "entryIndex": len(entries) - 1,
                        "previousLevel": None,
                        "newLevel": target.value,
                        "created": True,
                    }
                    result.notifications.append(f"Granted: {display} ({target.label})")
                    continue

                current = level_from_flags(entries[index])
                if target.order <= current.order:
                    result.notifications.append(f"{display} already at or above {target.value}")
                    continue

                entries[index].update(level_flags(target))
                earlier = result.applied.get(grant_key)
                if earlier:
                    earlier["newLevel"] = target.value
                    result.notifications.append(f"Upgraded {display} to {target.label}")
                    continue
                result.applied[grant_key] = {
                    "schemaKey": schema_key,
                    "specialization": entry.specialization,
                    "entryIndex": index,
                    "previousLevel": current.value,
                    "newLevel": target.value,
                    "upgraded": True,
                }
            else:
                current = levels.get(schema_key)
                if current is None:
                    current = level_from_flags(actor.get(_skill_path(schema_key)))
                if target.order <= current.order:
                    result.notifications.append(f"{display} already at or above {target.value}")
                    continue

                levels[schema_key] = target
                for flag, value in level_flags(target).items():
                    patch[f"{_skill_path(schema_key)}.{flag}"] = value
                # A repeated key keeps the level it started from
                earlier = result.applied.get(grant_key)
                previous = earlier["previousLevel"] if earlier else current.value
                result.applied[grant_key] = {
                    "schemaKey": schema_key,
                    "previousLevel": previous,
                    "newLevel": target.value,
                    "upgraded": True,
                }

            result.notifications.append(f"Upgraded {display} to {target.label}")

        for schema_key, entries in entry_lists.items():
            patch[f"{_skill_path(schema_key)}.entries"] = entries

        if not options.dry_run and result.applied:
            await actor.update(patch)
            logger.debug(f"Applied {len(result.applied)} skill changes to {actor.name}")

        return self._finish(result)

    async def reverse(self, actor: "ActorDocument", applied: dict[str, Any]) -> dict[str, Any]:
        restore_data: dict[str, Any] = {"selected": [], "skills": []}
        patch: dict[str, Any] = {}
        entry_lists: dict[str, list[dict]] = {}

        # Newest first, so created entries come off before older ones shift
        for grant_key, state in reversed(list((applied or {}).items())):
            schema_key = state.get("schemaKey")
            if not schema_key:
                continue
            previous = state.get("previousLevel")

            if state.get("specialization"):
                entries = entry_lists.get(schema_key)
                if entries is None:
                    entries = copy.deepcopy(actor.get(f"{_skill_path(schema_key)}.entries") or [])
                    entry_lists[schema_key] = entries
                index = _find_entry(entries, state["specialization"])
                if index is None:
                    continue
                if state.get("created"):
                    entries.pop(index)
                elif previous:
                    entries[index].update(level_flags(previous))
            elif state.get("upgraded") and previous:
                for flag, value in level_flags(previous).items():
                    patch[f"{_skill_path(schema_key)}.{flag}"] = value
            else:
                continue

            restore_data["selected"].insert(0, grant_key)
            restore_data["skills"].insert(0, {"key": grant_key, **state})

        for schema_key, entries in entry_lists.items():
            patch[f"{_skill_path(schema_key)}.entries"] = entries

        if patch:
            await actor.update(patch)

        return restore_data

    def get_automatic_value(self) -> dict[str, Any] | Literal[False]:
        if self.optional or any(s.optional for s in self.skills):
            return False
        return {"selected": [s.grant_key for s in self.skills]}

    def validate(self) -> list[str]:
        errors = super().validate()

        if not self.skills:
            errors.append("Skill grant has no skills configured")

        for entry in self.skills:
            if not entry.key:
                errors.append("Skill grant entry missing key")
                continue
            try:
                self._check_entry(entry)
            except (SkillResolutionError, ValueError) as exc:
                errors.append(str(exc))

        return errors

    async def get_summary(self) -> GrantSummary:
        summary = await super().get_summary()

        for entry in self.skills:
            try:
                schema_key, level = self._check_entry(entry)
            except (SkillResolutionError, ValueError):
                summary.details.append(SummaryDetail(
                    label=entry.grant_key,
                    value=entry.level,
                    optional=entry.optional,
                    error=True,
                ))
                continue
            summary.details.append(SummaryDetail(
                label=self._display(schema_key, entry.specialization),
                value=level.label,
                optional=entry.optional,
            ))

        return summary
