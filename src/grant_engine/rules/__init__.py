"""Fixed rules tables: characteristics, skills, training levels and resources."""

from .characteristics import (
    BONUS_TOKENS,
    CHARACTERISTICS,
    CHARACTERISTIC_LABELS,
    characteristic_label,
)
from .resources import RESOURCES, ResourceDef
from .skills import (
    SKILL_KEY_TO_NAME,
    SKILL_NAME_TO_KEY,
    SPECIALIST_KEYS,
    TrainingLevel,
    is_specialist,
    level_flags,
    level_from_flags,
    normalize_skill_name,
    resolve_skill_key,
)

__all__ = [
    # Characteristics
    "BONUS_TOKENS",
    "CHARACTERISTICS",
    "CHARACTERISTIC_LABELS",
    "characteristic_label",
    # Resources
    "RESOURCES",
    "ResourceDef",
    # Skills
    "SKILL_KEY_TO_NAME",
    "SKILL_NAME_TO_KEY",
    "SPECIALIST_KEYS",
    "TrainingLevel",
    "is_specialist",
    "level_flags",
    "level_from_flags",
    "normalize_skill_name",
    "resolve_skill_key",
]
