"""
Legacy grant migration.

Older source items describe their benefits as one object under
system.grants (plus characteristic bonuses under system.modifiers). This
module converts that object into the list of typed grant configs the
engine applies. Output is plain wire-format dicts, the same shape stored
under system.grantsV2.

Legacy entries often name items instead of referencing them. Pass a
lookup callable (MemoryCompendium.find_uuid fits) to back-fill uuids;
entries that stay unresolved keep an empty uuid plus "_legacyName" and
are skipped with a notification when applied.
"""

import logging
import re
from typing import Any, Callable

from .state.schema import generate_id

logger = logging.getLogger(__name__)

NameLookup = Callable[[str, str | None], str | None]

# "Common Lore (Imperium)" -> ("Common Lore", "Imperium")
_SPECIALIZED_NAME = re.compile(r"^\s*(?P<name>[^()]+?)\s*\((?P<specialization>[^()]+)\)\s*$")


def _grant(grant_type: str, **fields: Any) -> dict[str, Any]:
    return {"_id": generate_id(), "type": grant_type, **fields}


def _lookup_uuid(entry: dict, kind: str | None, lookup: NameLookup | None) -> str:
    uuid = entry.get("uuid") or ""
    if uuid or lookup is None or not entry.get("name"):
        return uuid
    found = lookup(entry["name"], kind)
    if found:
        logger.debug(f"Resolved legacy {kind or 'item'} {entry['name']!r} to {found}")
    return found or ""


def _item_entry(entry: dict, kind: str | None, lookup: NameLookup | None, **extra: Any) -> dict:
    migrated = {"uuid": _lookup_uuid(entry, kind, lookup), "_legacyName": entry.get("name")}
    migrated.update({k: v for k, v in extra.items() if v is not None})
    return migrated


def _skill_entry(skill: str | dict) -> dict[str, Any]:
    if isinstance(skill, str):
        skill = {"name": skill}
    key = skill.get("key") or skill.get("name") or ""
    specialization = skill.get("specialization") or ""

    match = _SPECIALIZED_NAME.match(key)
    if match and not specialization:
        key, specialization = match.group("name"), match.group("specialization")

    return {
        "key": key,
        "specialization": specialization,
        "level": skill.get("level") or "trained",
    }


def migrate_old_grants(
    old_grants: dict[str, Any] | None,
    modifiers: dict[str, Any] | None = None,
    lookup: NameLookup | None = None,
) -> list[dict[str, Any]]:
    """
    Convert a legacy grants object into grant configs.

    Args:
        old_grants: Legacy system.grants object (may be None)
        modifiers: Legacy system.modifiers; its characteristics map becomes
            a characteristic grant
        lookup: Optional (name, kind) -> uuid resolver for named items

    Returns:
        Grant configs in wire format, characteristics first
    """
    new_grants: list[dict[str, Any]] = []

    char_mods = (modifiers or {}).get("characteristics") or (old_grants or {}).get("characteristics")
    if char_mods:
        characteristics = [
            {"key": key, "value": value}
            for key, value in char_mods.items()
            if value
        ]
        if characteristics:
            new_grants.append(_grant("characteristic", characteristics=characteristics))

    if not old_grants:
        return new_grants

    if old_grants.get("woundsFormula") or old_grants.get("wounds"):
        formula = old_grants.get("woundsFormula") or str(old_grants["wounds"])
        new_grants.append(_grant("resource", resources=[{"type": "wounds", "formula": formula}]))

    if old_grants.get("fateFormula") or old_grants.get("fateThreshold") or old_grants.get("fate"):
        formula = (
            old_grants.get("fateFormula")
            or str(old_grants.get("fateThreshold") or old_grants.get("fate"))
        )
        new_grants.append(_grant("resource", resources=[{"type": "fate", "formula": formula}]))

    if old_grants.get("skills"):
        new_grants.append(_grant("skill", skills=[_skill_entry(s) for s in old_grants["skills"]]))

    if old_grants.get("talents"):
        new_grants.append(_grant("item", items=[
            _item_entry(t, "talent", lookup, _legacySpecialization=t.get("specialization"))
            for t in old_grants["talents"]
        ]))

    if old_grants.get("traits"):
        new_grants.append(_grant("item", items=[
            _item_entry(t, "trait", lookup, overrides={"system.level": t["level"]} if t.get("level") else {})
            for t in old_grants["traits"]
        ]))

    if old_grants.get("equipment"):
        new_grants.append(_grant("item", items=[
            _item_entry(
                e, None, lookup,
                overrides={"system.quantity": e["quantity"]} if (e.get("quantity") or 0) > 1 else {},
            )
            for e in old_grants["equipment"]
        ]))

    for choice in old_grants.get("choices") or []:
        new_grants.append(_grant(
            "choice",
            label=choice.get("label", ""),
            count=choice.get("count") or 1,
            options=[
                {
                    "label": opt.get("name") or opt.get("label") or "Option",
                    "description": opt.get("description", ""),
                    "grants": migrate_choice_option(opt, lookup),
                }
                for opt in choice.get("options") or []
            ],
        ))

    return new_grants


def migrate_choice_option(option: dict[str, Any], lookup: NameLookup | None = None) -> list[dict[str, Any]]:
    """Nested grant configs for one legacy choice option."""
    grants: list[dict[str, Any]] = []

    # A nested legacy grants object migrates recursively
    if option.get("grants"):
        grants.extend(migrate_old_grants(option["grants"], lookup=lookup))

    if option.get("characteristic") and option.get("value"):
        grants.append(_grant("characteristic", characteristics=[
            {"key": option["characteristic"], "value": option["value"]}
        ]))

    if option.get("skill"):
        grants.append(_grant("skill", skills=[_skill_entry({
            "key": option["skill"],
            "specialization": option.get("specialization"),
            "level": option.get("level"),
        })]))

    if option.get("talent") or (option.get("uuid") and not option.get("grants")):
        name = option.get("talent") or option.get("name")
        grants.append(_grant("item", items=[
            _item_entry({"uuid": option.get("uuid"), "name": name}, "talent", lookup)
        ]))

    return grants
