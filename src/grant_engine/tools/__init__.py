"""Dice and formula tools used by resource grants."""

from .dice import (
    RandomSource,
    RollOutcome,
    ScriptedRandomSource,
    SeededRandomSource,
    parse_dice,
)
from .formula import (
    evaluate,
    evaluate_formula,
    is_flat,
    is_lookup_table,
    parse,
    tokenize,
)

__all__ = [
    # Dice
    "RandomSource",
    "RollOutcome",
    "ScriptedRandomSource",
    "SeededRandomSource",
    "parse_dice",
    # Formula
    "evaluate",
    "evaluate_formula",
    "is_flat",
    "is_lookup_table",
    "parse",
    "tokenize",
]
