"""
Resource formula language.

Three shapes of formula are accepted:
- a flat integer: "5", "-2"
- a d10 lookup table: "(1-4|=2),(5-7|=3),(8-10|=4)"
- a dice/characteristic expression: "1d5+2", "2xTB", "WPB+1d5", "(1d10+2)*2"

Grammar:
    table   := entry ("," entry)*
    entry   := "(" INT "-" INT "|=" INT ")"
    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "x") unary)*
    unary   := ("-" | "+") unary | primary
    primary := INT "d" INT | INT BONUS | INT | "d" INT | BONUS | "(" expr ")"

BONUS is one of the characteristic bonus abbreviations (TB, SB, WPB, ...),
matched case-insensitively. "3TB" and "3xTB" both mean three times the
toughness bonus.

Evaluation is async because dice terms go through a RandomSource. Nothing
here touches randomness directly, so every path is testable with a
ScriptedRandomSource.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from ..errors import FormulaError
from ..rules.characteristics import BONUS_TOKENS

if TYPE_CHECKING:
    from ..state.actor import ActorDocument
    from .dice import RandomSource

logger = logging.getLogger(__name__)


FLAT_PATTERN = re.compile(r"^\s*[+-]?\d+\s*$")

# Longest first so "WPB" wins over a shorter prefix
_BONUS_BY_LENGTH = sorted(BONUS_TOKENS, key=len, reverse=True)

_SINGLE_CHAR_TOKENS = {
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "(": "LPAREN",
    ")": "RPAREN",
    ",": "COMMA",
}


# -----------------------------------------------------------------------------
# Tokens
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Token:
    kind: str  # INT, DICE, BONUS, PLUS, MINUS, STAR, LPAREN, RPAREN, COMMA, TABLE_EQ
    text: str
    position: int

    @property
    def value(self) -> int:
        return int(self.text)


def tokenize(formula: str) -> list[Token]:
    """Split a formula into tokens. Whitespace is ignored."""
    tokens: list[Token] = []
    i = 0
    length = len(formula)

    while i < length:
        char = formula[i]

        if char.isspace():
            i += 1
            continue

        if char.isdigit():
            start = i
            while i < length and formula[i].isdigit():
                i += 1
            tokens.append(Token("INT", formula[start:i], start))
            continue

        if formula.startswith("|=", i):
            tokens.append(Token("TABLE_EQ", "|=", i))
            i += 2
            continue

        if char in _SINGLE_CHAR_TOKENS:
            tokens.append(Token(_SINGLE_CHAR_TOKENS[char], char, i))
            i += 1
            continue

        if char.isalpha():
            upper = formula[i:].upper()
            bonus = next((b for b in _BONUS_BY_LENGTH if upper.startswith(b)), None)
            if bonus:
                tokens.append(Token("BONUS", bonus, i))
                i += len(bonus)
                continue
            if char in "dD":
                tokens.append(Token("DICE", char, i))
                i += 1
                continue
            if char in "xX":
                tokens.append(Token("STAR", char, i))
                i += 1
                continue

        raise FormulaError(f"Unexpected character {char!r}", formula, i)

    return tokens


# -----------------------------------------------------------------------------
# Syntax tree
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Number:
    value: int


@dataclass(frozen=True)
class Dice:
    count: int
    sides: int

    @property
    def notation(self) -> str:
        return f"{self.count}d{self.sides}"


@dataclass(frozen=True)
class Bonus:
    token: str
    multiplier: int = 1

    @property
    def characteristic(self) -> str:
        return BONUS_TOKENS[self.token]


@dataclass(frozen=True)
class BinaryOp:
    op: str  # "+", "-", "*"
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Negate:
    operand: "Node"


@dataclass(frozen=True)
class TableEntry:
    low: int
    high: int
    value: int

    def matches(self, roll: int) -> bool:
        return self.low <= roll <= self.high


@dataclass(frozen=True)
class LookupTable:
    entries: tuple[TableEntry, ...]


Node = Union[Number, Dice, Bonus, BinaryOp, Negate, LookupTable]


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, formula: str):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.index = 0

    def peek(self, offset: int = 0) -> Token | None:
        index = self.index + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise FormulaError("Unexpected end of formula", self.formula)
        self.index += 1
        return token

    def expect(self, kind: str) -> Token:
        token = self.advance()
        if token.kind != kind:
            raise FormulaError(
                f"Expected {kind} but found {token.text!r}", self.formula, token.position
            )
        return token

    def at(self, *kinds: str) -> bool:
        token = self.peek()
        return token is not None and token.kind in kinds

    def finish(self) -> None:
        token = self.peek()
        if token is not None:
            raise FormulaError(f"Unexpected {token.text!r}", self.formula, token.position)

    # -- lookup tables --

    def table(self) -> LookupTable:
        entries = [self.table_entry()]
        while self.at("COMMA"):
            self.advance()
            entries.append(self.table_entry())
        self.finish()
        return LookupTable(tuple(entries))

    def table_entry(self) -> TableEntry:
        self.expect("LPAREN")
        low = self.expect("INT").value
        self.expect("MINUS")
        high = self.expect("INT").value
        self.expect("TABLE_EQ")
        value = self.expect("INT").value
        self.expect("RPAREN")
        if low > high:
            raise FormulaError(f"Range {low}-{high} is reversed", self.formula)
        return TableEntry(low, high, value)

    # -- expressions --

    def expression(self) -> Node:
        node = self.term()
        while self.at("PLUS", "MINUS"):
            op = self.advance().text
            node = BinaryOp(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self.at("STAR"):
            self.advance()
            node = BinaryOp("*", node, self.unary())
        return node

    def unary(self) -> Node:
        if self.at("MINUS"):
            self.advance()
            return Negate(self.unary())
        if self.at("PLUS"):
            self.advance()
            return self.unary()
        return self.primary()

    def primary(self) -> Node:
        token = self.advance()

        if token.kind == "INT":
            if self.at("DICE"):
                self.advance()
                sides = self.expect("INT").value
                return self._dice(token.value, sides, token)
            if self.at("BONUS"):
                return Bonus(self.advance().text, token.value)
            return Number(token.value)

        if token.kind == "DICE":
            sides = self.expect("INT").value
            return self._dice(1, sides, token)

        if token.kind == "BONUS":
            return Bonus(token.text)

        if token.kind == "LPAREN":
            node = self.expression()
            self.expect("RPAREN")
            return node

        raise FormulaError(f"Unexpected {token.text!r}", self.formula, token.position)

    def _dice(self, count: int, sides: int, token: Token) -> Dice:
        if count < 1 or sides < 1:
            raise FormulaError("Dice need at least one die and one side", self.formula, token.position)
        return Dice(count, sides)


def is_lookup_table(formula: str) -> bool:
    return "|=" in formula


def parse(formula: str) -> Node:
    """
    Parse a formula string into a syntax tree.

    Raises:
        FormulaError: on any syntax problem
    """
    if not formula or not formula.strip():
        raise FormulaError("Empty formula")

    parser = _Parser(formula)
    if is_lookup_table(formula):
        return parser.table()

    node = parser.expression()
    parser.finish()
    return node


# -----------------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------------

async def evaluate(
    node: Node,
    actor: "ActorDocument | None" = None,
    random: "RandomSource | None" = None,
) -> int:
    """
    Evaluate a parsed formula.

    Args:
        node: Parsed syntax tree
        actor: Supplies characteristic bonuses for BONUS terms
        random: Supplies dice results for Dice terms and lookup tables
    """
    if isinstance(node, Number):
        return node.value

    if isinstance(node, Negate):
        return -(await evaluate(node.operand, actor, random))

    if isinstance(node, BinaryOp):
        left = await evaluate(node.left, actor, random)
        right = await evaluate(node.right, actor, random)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        return left * right

    if isinstance(node, Bonus):
        if actor is None:
            raise FormulaError(f"{node.token} needs an actor to read from")
        bonus = actor.get(f"system.characteristics.{node.characteristic}.bonus", 0) or 0
        return int(bonus) * node.multiplier

    if isinstance(node, Dice):
        if random is None:
            raise FormulaError(f"{node.notation} needs a random source")
        outcome = await random.roll(node.notation)
        return outcome.total

    if isinstance(node, LookupTable):
        if random is None:
            raise FormulaError("Lookup table needs a random source")
        return await _evaluate_table(node, random)

    raise FormulaError(f"Unknown node {node!r}")


async def _evaluate_table(table: LookupTable, random: "RandomSource") -> int:
    rolled = await random.roll_d10()
    for entry in table.entries:
        if entry.matches(rolled):
            logger.debug(f"Rolled {rolled} on lookup table, result: {entry.value}")
            return entry.value

    fallback = table.entries[0].value
    logger.warning(
        f"Roll {rolled} matched no lookup table range, using first entry ({fallback})"
    )
    return fallback


def is_flat(formula: str | int) -> bool:
    """True only for a literal integer: no dice, no bonus tokens, no tables."""
    if isinstance(formula, bool):
        return False
    if isinstance(formula, int):
        return True
    return bool(FLAT_PATTERN.match(formula or ""))


async def evaluate_formula(
    formula: str | int,
    actor: "ActorDocument | None" = None,
    random: "RandomSource | None" = None,
) -> int:
    """
    Evaluate a formula in one step.

    Flat integers are returned as-is without touching the random source.
    """
    if isinstance(formula, int) and not isinstance(formula, bool):
        return formula
    if is_flat(formula):
        return int(formula.strip())
    return await evaluate(parse(formula), actor, random)
