"""Builders shared by the test modules."""

import asyncio

from grant_engine.state import ItemData, ItemTemplate

AMBIDEXTROUS = "Compendium.talents.ambidextrous"
SOUND_CONSTITUTION = "Compendium.talents.sound-constitution"
DARK_SIGHT = "Compendium.traits.dark-sight"
LASGUN = "Compendium.weapons.lasgun"
FORGE_WORLD = "Compendium.origins.forge-world"
IRON_JAW = "Compendium.talents.iron-jaw"
TALENTED = "Compendium.talents.talented"


def run(coro):
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run(coro)


def template(uuid: str, name: str, kind: str = "talent", **system) -> dict:
    return {"uuid": uuid, "name": name, "type": kind, "system": system}


def source_item(name: str, grants: list[dict], kind: str = "originPath", uuid: str | None = None) -> ItemData:
    """A source item carrying new-format grant configs."""
    data = {"name": name, "type": kind, "system": {"grantsV2": grants}}
    if uuid:
        return ItemTemplate.model_validate({**data, "uuid": uuid})
    return ItemData.model_validate(data)


def item_grant(uuid: str, _id: str = "items", **entry) -> dict:
    return {"_id": _id, "type": "item", "items": [{"uuid": uuid, **entry}]}


def skill_grant(*skills: dict, _id: str = "skills", **fields) -> dict:
    return {"_id": _id, "type": "skill", "skills": list(skills), **fields}


def characteristic_grant(_id: str = "chars", **values: int) -> dict:
    return {
        "_id": _id,
        "type": "characteristic",
        "characteristics": [{"key": k, "value": v} for k, v in values.items()],
    }


def resource_grant(*resources: dict, _id: str = "res", **fields) -> dict:
    return {"_id": _id, "type": "resource", "resources": list(resources), **fields}


def chain_link(n: int) -> dict:
    """Talent n grants talent n + 1."""
    return template(
        f"Compendium.talents.chain-{n}",
        f"Chain Link {n}",
        grantsV2=[item_grant(f"Compendium.talents.chain-{n + 1}", _id=f"chain{n}")],
    )
