"""
Pytest fixtures for grant engine tests.

Provides an in-memory compendium, a sample actor and a manager wired with
scripted dice so every roll is known in advance.
"""

import pytest

from grant_engine.grants import GrantContext
from grant_engine.manager import GrantsManager
from grant_engine.rules import CHARACTERISTICS
from grant_engine.state import EventBus, MemoryActor, MemoryCompendium
from grant_engine.tools import ScriptedRandomSource

from helpers import (
    AMBIDEXTROUS,
    DARK_SIGHT,
    FORGE_WORLD,
    IRON_JAW,
    LASGUN,
    SOUND_CONSTITUTION,
    TALENTED,
    chain_link,
    template,
)


@pytest.fixture
def compendium():
    """Talents, a trait, a weapon, an origin and a chain of self-granting talents."""
    templates = [
        template(AMBIDEXTROUS, "Ambidextrous"),
        template(SOUND_CONSTITUTION, "Sound Constitution"),
        template(DARK_SIGHT, "Dark-sight", kind="trait"),
        template(LASGUN, "Lasgun", kind="weapon", quantity=1, damage="1d10+3"),
        template(FORGE_WORLD, "Forge World", kind="originPath"),
        template(
            IRON_JAW,
            "Iron Jaw",
            grantsV2=[{
                "_id": "jaw",
                "type": "characteristic",
                "characteristics": [{"key": "toughness", "value": 5}],
            }],
        ),
        template(TALENTED, "Talented", specialization="Awareness"),
    ]
    templates += [chain_link(n) for n in range(1, 6)]
    return MemoryCompendium(templates)


@pytest.fixture
def actor_data():
    """Actor document: every characteristic at advance 0 with bonus 3, toughness bonus 4."""
    characteristics = {key: {"base": 30, "advance": 0, "bonus": 3} for key in CHARACTERISTICS}
    characteristics["toughness"]["bonus"] = 4
    return {
        "_id": "actor00000000001",
        "name": "Test Explorer",
        "type": "acolyte",
        "system": {
            "characteristics": characteristics,
            "skills": {
                "awareness": {"trained": False, "plus10": False, "plus20": False},
                "dodge": {"trained": True, "plus10": False, "plus20": False},
                "commonLore": {
                    "entries": [{"name": "Imperium", "trained": True, "plus10": False, "plus20": False}],
                },
            },
            "wounds": {"value": 10, "max": 10},
            "fate": {"value": 2, "max": 2},
            "corruption": {"value": 0},
            "insanity": {"value": 0},
        },
    }


@pytest.fixture
def actor(actor_data):
    return MemoryActor(actor_data)


@pytest.fixture
def dice():
    """Scripted dice with no faces; tests build their own when they roll."""
    return ScriptedRandomSource()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def context(compendium, dice, bus):
    return GrantContext(resolver=compendium, random=dice, notifications=bus)


@pytest.fixture
def manager(context):
    return GrantsManager(context=context)
