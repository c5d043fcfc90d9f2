"""Dice rolling for Emberfall: ``NdM`` formulas with expression counts and modifiers."""

from __future__ import annotations

import logging
import math
import random
import re
from collections import Counter
from typing import Any, Mapping, Protocol

from pydantic import BaseModel

from engine.formula import FormulaError, FormulaEvaluator

logger = logging.getLogger(__name__)

MAX_DICE = 1000

# A "d<digits>" that is not part of an identifier, e.g. the d6 in "(strengthMod+2)d6+1"
_DICE_TERM = re.compile(r"(?<![A-Za-z_])d(\d+)(?![A-Za-z0-9_])", re.IGNORECASE)


def _split_terms(notation: str) -> list[tuple[int, str]]:
    """Split at top-level ``+``/``-`` into ``(sign, term)`` pairs.

    Unary signs (``1d6+-1``, ``2*-3``) and anything inside parentheses stay
    in their term.
    """
    terms: list[tuple[int, str]] = []
    sign = 1
    depth = 0
    start = 0
    for i, char in enumerate(notation):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char in "+-" and depth == 0 and i > start and notation[i - 1] not in "+-*/(,":
            terms.append((sign, notation[start:i]))
            sign = 1 if char == "+" else -1
            start = i + 1
    terms.append((sign, notation[start:]))
    return terms


class RandomSource(Protocol):
    """Anything with a ``random()`` returning a float in [0, 1)."""

    def random(self) -> float: ...


class DiceResult(BaseModel):
    """Result of a dice roll."""
    total: int | float
    rolls: list[int] = []               # Every die rolled, in formula order
    dice_total: int = 0                 # Signed sum of the dice only ("1d6-1d4" subtracts the d4)
    modifier: int | float = 0           # Sum of the non-dice terms
    formula: str
    details: str = ""
    dice_count: int = 0
    sides: int = 0                      # Die size of the first dice term
    error: str | None = None
    sub_results: list[DiceResult] = []   # Both rolls of an advantage/disadvantage roll

    @property
    def natural(self) -> int | None:
        """The first die as rolled, used for critical / fumble checks."""
        return self.rolls[0] if self.rolls else None


class DiceStatistics(BaseModel):
    """Distribution of many rolls of one formula."""
    formula: str
    iterations: int
    average: float
    minimum: int | float
    maximum: int | float
    distribution: dict[int | float, int]


def has_dice(formula: str) -> bool:
    """True if the formula contains a dice term such as ``d6``."""
    return bool(formula) and _DICE_TERM.search(re.sub(r"\s+", "", formula)) is not None


class DiceRoller:
    """Rolls dice formulas.

    Count and modifier sub-expressions are delegated to a ``FormulaEvaluator``.
    The random source is injectable so tests can seed or stub it.
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        evaluator: FormulaEvaluator | None = None,
    ):
        self.rng = rng or random.Random()
        self.evaluator = evaluator or FormulaEvaluator()

    def roll(self, formula: str, context: Mapping[str, Any] | None = None) -> DiceResult:
        """Parse and roll a formula like ``2d6+3``, ``(strengthMod+2)d6+strengthMod`` or ``1d6+1d4-1``.

        The formula is a sum of ``+``/``-`` terms, each either a dice term
        ``[count]dM`` or a plain expression. Formulas without a dice term are
        evaluated as a whole and report no rolls. Never raises: errors give a
        zero total with ``error`` set.

        Args:
            formula: Dice formula.
            context: Variables available to the count and modifier expressions.

        Returns:
            DiceResult with total, individual rolls, modifier and details.
        """
        if not formula or not isinstance(formula, str):
            logger.warning("Dice formula %r is not a non-empty string", formula)
            return DiceResult(
                total=0,
                formula=str(formula or ""),
                details="Roll failed",
                error="Formula must be a non-empty string",
            )

        notation = re.sub(r"\s+", "", formula)
        try:
            if _DICE_TERM.search(notation) is None:
                total = self._evaluate(notation, context)
                return DiceResult(total=total, formula=notation, details=f"{notation}={total}")
            return self._roll_terms(notation, context)
        except (FormulaError, ArithmeticError, ValueError) as e:
            logger.warning("Dice formula %r rolled as 0: %s", notation, e)
            return DiceResult(total=0, formula=notation, details="Roll failed", error=str(e))

    def _roll_terms(self, notation: str, context: Mapping[str, Any] | None) -> DiceResult:
        rolls: list[int] = []
        dice_total = 0
        modifier: int | float = 0
        sides = 0
        parts: list[str] = []

        for sign, term in _split_terms(notation):
            while term and term[0] in "+-":
                if term[0] == "-":
                    sign = -sign
                term = term[1:]
            if not term:
                raise FormulaError(f"Missing term in {notation!r}")

            prefix = "-" if sign < 0 else "+"
            match = _DICE_TERM.search(term)
            if match is None:
                value = self._evaluate(term, context)
                modifier += sign * value
                parts.append(f"{prefix}{value}")
                continue

            term_rolls, term_sides = self._roll_dice_term(term, match, context)
            if len(rolls) + len(term_rolls) > MAX_DICE:
                raise FormulaError(f"Too many dice: {len(rolls) + len(term_rolls)}")
            rolls.extend(term_rolls)
            dice_total += sign * sum(term_rolls)
            sides = sides or term_sides
            parts.append(f"{prefix}{len(term_rolls)}d{term_sides}({','.join(str(r) for r in term_rolls)})")

        total = dice_total + modifier
        return DiceResult(
            total=total,
            rolls=rolls,
            dice_total=dice_total,
            modifier=modifier,
            formula=notation,
            details=f"{''.join(parts).lstrip('+')}={total}",
            dice_count=len(rolls),
            sides=sides,
        )

    def _roll_dice_term(
        self,
        term: str,
        match: re.Match[str],
        context: Mapping[str, Any] | None,
    ) -> tuple[list[int], int]:
        """Roll one ``[count]dM`` term. Nothing may follow the die size."""
        count_expr = term[:match.start()]
        rest = term[match.end():]
        sides = int(match.group(1))

        if sides < 1:
            raise FormulaError(f"Invalid die size: d{sides}")
        if rest:
            raise FormulaError(f"Unexpected {rest!r} after d{sides}")

        count = 1
        if count_expr:
            count = max(1, math.floor(self._evaluate(count_expr, context)))
        if count > MAX_DICE:
            raise FormulaError(f"Too many dice: {count}")

        return [self.roll_die(sides) for _ in range(count)], sides

    def _evaluate(self, expression: str, context: Mapping[str, Any] | None) -> int | float:
        # A sub-expression that does not parse fails the whole roll
        if not self.evaluator.validate(expression):
            raise FormulaError(f"Invalid expression {expression!r}")
        return self.evaluator.evaluate(expression, context)

    def roll_die(self, sides: int) -> int:
        """Roll a single die: ``floor(random() * sides) + 1``."""
        return min(sides, math.floor(self.rng.random() * sides) + 1)

    def roll_with_advantage(self, formula: str, context: Mapping[str, Any] | None = None) -> DiceResult:
        """Roll twice and keep the higher total."""
        return self._roll_twice(formula, context, prefer_higher=True)

    def roll_with_disadvantage(self, formula: str, context: Mapping[str, Any] | None = None) -> DiceResult:
        """Roll twice and keep the lower total."""
        return self._roll_twice(formula, context, prefer_higher=False)

    def _roll_twice(
        self,
        formula: str,
        context: Mapping[str, Any] | None,
        prefer_higher: bool,
    ) -> DiceResult:
        first = self.roll(formula, context)
        second = self.roll(formula, context)
        if prefer_higher:
            chosen = first if first.total >= second.total else second
            label = "Advantage"
        else:
            chosen = first if first.total <= second.total else second
            label = "Disadvantage"

        return chosen.model_copy(update={
            "details": f"{label}: {first.total}, {second.total} (took {chosen.total})",
            "sub_results": [first, second],
        })

    def sample(
        self,
        formula: str,
        context: Mapping[str, Any] | None = None,
        iterations: int = 1000,
    ) -> DiceStatistics:
        """Roll a formula many times and summarize the totals."""
        totals = [self.roll(formula, context).total for _ in range(max(1, iterations))]
        return DiceStatistics(
            formula=formula,
            iterations=len(totals),
            average=sum(totals) / len(totals),
            minimum=min(totals),
            maximum=max(totals),
            distribution=dict(sorted(Counter(totals).items())),
        )
