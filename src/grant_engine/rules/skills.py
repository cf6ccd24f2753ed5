"""
Canonical skill table and the training-level lattice.

The alias table is built once at import time from every display name and
schema key. Lookups ignore case, spaces, hyphens and underscores, so
"Common Lore", "common-lore", "commonlore" and "commonLore" all resolve to
the same schema key. Anything else is an unknown skill.
"""

import re
from enum import Enum

from ..errors import SkillResolutionError


class TrainingLevel(str, Enum):
    """Ordered skill proficiency tiers: known < trained < plus10 < plus20."""
    KNOWN = "known"
    TRAINED = "trained"
    PLUS10 = "plus10"
    PLUS20 = "plus20"

    @property
    def order(self) -> int:
        return _LEVEL_ORDER[self]

    @property
    def label(self) -> str:
        return _LEVEL_LABELS[self]


_LEVEL_ORDER: dict[TrainingLevel, int] = {
    TrainingLevel.KNOWN: 0,
    TrainingLevel.TRAINED: 1,
    TrainingLevel.PLUS10: 2,
    TrainingLevel.PLUS20: 3,
}

_LEVEL_LABELS: dict[TrainingLevel, str] = {
    TrainingLevel.KNOWN: "Known",
    TrainingLevel.TRAINED: "Trained",
    TrainingLevel.PLUS10: "+10",
    TrainingLevel.PLUS20: "+20",
}


SKILL_NAME_TO_KEY: dict[str, str] = {
    # Basic
    "Awareness": "awareness",
    "Barter": "barter",
    "Carouse": "carouse",
    "Charm": "charm",
    "Climb": "climb",
    "Command": "command",
    "Concealment": "concealment",
    "Contortionist": "contortionist",
    "Deceive": "deceive",
    "Disguise": "disguise",
    "Dodge": "dodge",
    "Evaluate": "evaluate",
    "Gamble": "gamble",
    "Inquiry": "inquiry",
    "Intimidate": "intimidate",
    "Literacy": "literacy",
    "Logic": "logic",
    "Scrutiny": "scrutiny",
    "Search": "search",
    "Silent Move": "silentMove",
    "Survival": "survival",
    "Swim": "swim",

    # Advanced
    "Acrobatics": "acrobatics",
    "Blather": "blather",
    "Chem-Use": "chemUse",
    "Commerce": "commerce",
    "Demolition": "demolition",
    "Interrogation": "interrogation",
    "Invocation": "invocation",
    "Medicae": "medicae",
    "Psyniscience": "psyniscience",
    "Security": "security",
    "Shadowing": "shadowing",
    "Sleight of Hand": "sleightOfHand",
    "Tracking": "tracking",
    "Wrangling": "wrangling",

    # Specialist (advanced, tracked per specialization)
    "Ciphers": "ciphers",
    "Common Lore": "commonLore",
    "Drive": "drive",
    "Forbidden Lore": "forbiddenLore",
    "Navigation": "navigation",
    "Performer": "performer",
    "Pilot": "pilot",
    "Scholastic Lore": "scholasticLore",
    "Secret Tongue": "secretTongue",
    "Speak Language": "speakLanguage",
    "Tech-Use": "techUse",
    "Trade": "trade",

    # Compatibility skills from other game lines
    "Athletics": "athletics",
    "Parry": "parry",
    "Stealth": "stealth",
}

SKILL_KEY_TO_NAME: dict[str, str] = {v: k for k, v in SKILL_NAME_TO_KEY.items()}

SPECIALIST_KEYS: frozenset[str] = frozenset({
    "ciphers", "commonLore", "drive", "forbiddenLore",
    "navigation", "performer", "pilot", "scholasticLore",
    "secretTongue", "speakLanguage", "techUse", "trade",
})

_STRIP = re.compile(r"[\s_\-]+")


def normalize_skill_name(text: str) -> str:
    """Fold case and drop spaces, hyphens and underscores."""
    return _STRIP.sub("", text).lower()


def _build_alias_table() -> dict[str, str]:
    table: dict[str, str] = {}
    for name, key in SKILL_NAME_TO_KEY.items():
        table[normalize_skill_name(name)] = key
        table[normalize_skill_name(key)] = key
    return table


_ALIASES: dict[str, str] = _build_alias_table()


def resolve_skill_key(text: str) -> str:
    """
    Resolve a free-text skill reference to its schema key.

    Raises:
        SkillResolutionError: if the text matches no known skill
    """
    if not text or not isinstance(text, str):
        raise SkillResolutionError(str(text))
    key = _ALIASES.get(normalize_skill_name(text))
    if key is None:
        raise SkillResolutionError(text)
    return key


def is_specialist(key: str) -> bool:
    """True for skills that track named specializations in an entries list."""
    return key in SPECIALIST_KEYS


def level_flags(level: TrainingLevel | str) -> dict[str, bool]:
    """
    Training booleans for a level. Cumulative: plus20 implies plus10
    implies trained. "known" clears all three.
    """
    order = TrainingLevel(level).order
    return {
        "trained": order >= 1,
        "plus10": order >= 2,
        "plus20": order >= 3,
    }


def level_from_flags(data: dict | None) -> TrainingLevel:
    """Highest level whose boolean is set on a skill or specialization entry."""
    data = data or {}
    if data.get("plus20"):
        return TrainingLevel.PLUS20
    if data.get("plus10"):
        return TrainingLevel.PLUS10
    if data.get("trained"):
        return TrainingLevel.TRAINED
    return TrainingLevel.KNOWN
