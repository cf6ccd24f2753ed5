"""
The nine characteristics and the bonus tokens formulas may reference.
"""

# Order matches the character sheet
CHARACTERISTICS: tuple[str, ...] = (
    "weaponSkill",
    "ballisticSkill",
    "strength",
    "toughness",
    "agility",
    "intelligence",
    "perception",
    "willpower",
    "fellowship",
)

CHARACTERISTIC_LABELS: dict[str, str] = {
    "weaponSkill": "Weapon Skill",
    "ballisticSkill": "Ballistic Skill",
    "strength": "Strength",
    "toughness": "Toughness",
    "agility": "Agility",
    "intelligence": "Intelligence",
    "perception": "Perception",
    "willpower": "Willpower",
    "fellowship": "Fellowship",
}

# Bonus abbreviations usable in resource formulas ("2xTB", "WPB+1d5")
BONUS_TOKENS: dict[str, str] = {
    "TB": "toughness",
    "SB": "strength",
    "AB": "agility",
    "WPB": "willpower",
    "FB": "fellowship",
    "IB": "intelligence",
    "PB": "perception",
    "WSB": "weaponSkill",
    "BSB": "ballisticSkill",
}


def characteristic_label(key: str) -> str:
    """Display label for a characteristic key, falling back to the key."""
    return CHARACTERISTIC_LABELS.get(key, key)
