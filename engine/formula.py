"""Safe arithmetic formulas over named variables.

Formulas such as ``floor((strength-10)/2)+2`` are tokenized, parsed by a
small recursive-descent parser into an expression tree, and evaluated by
walking that tree. Only numbers, variables, ``+ - * /``, parentheses and the
whitelisted functions are reachable; anything else is a ``FormulaError``.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping, Union

logger = logging.getLogger(__name__)


class FormulaError(ValueError):
    """Malformed or disallowed formula text."""


# Limits keep parsing and tree walking well inside the interpreter's recursion limit
MAX_FORMULA_LENGTH = 500
MAX_NESTING = 50                # Parentheses, unary signs and function calls combined


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

_ATTRIBUTE_SHORT_NAMES = {
    "str": "strength",
    "dex": "dexterity",
    "agi": "agility",
    "con": "constitution",
    "int": "intelligence",
    "wis": "wisdom",
    "cha": "charisma",
}


def _build_aliases() -> dict[str, str]:
    aliases: dict[str, str] = {}
    for short, full in _ATTRIBUTE_SHORT_NAMES.items():
        mod = f"{full}Mod"
        aliases[short] = full
        aliases[full] = full
        aliases[f"{short}_mod"] = mod
        aliases[f"{full}_mod"] = mod
        aliases[mod.lower()] = mod
    return aliases


VARIABLE_ALIASES = _build_aliases()


def canonical_name(name: str) -> str:
    """Resolve a case-insensitive identifier to its canonical variable name."""
    return VARIABLE_ALIASES.get(name.lower(), name)


def _js_round(value: float) -> int:
    # Halves round toward +inf: round(2.5) == 3, round(-2.5) == -2
    return math.floor(value + 0.5)


# name -> (callable, min args, max args or None for variadic)
FUNCTIONS: dict[str, tuple[Callable[..., Any], int, int | None]] = {
    "floor": (math.floor, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "round": (_js_round, 1, 1),
    "min": (lambda *args: min(args), 1, None),
    "max": (lambda *args: max(args), 1, None),
    "abs": (abs, 1, 1),
    "sqrt": (math.sqrt, 1, 1),
}


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: int | float


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Call:
    func: str
    args: tuple["Node", ...]


Node = Union[Number, Variable, UnaryOp, BinaryOp, Call]


# ---------------------------------------------------------------------------
# Tokenizer and parser
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d+)?)|(?P<name>[A-Za-z_][A-Za-z0-9_]*)|(?P<op>[-+*/(),]))"
)


def tokenize(formula: str) -> list[tuple[str, str]]:
    """Split a formula into ``(kind, text)`` tokens.

    Raises:
        FormulaError: On any character outside the formula alphabet.
    """
    tokens: list[tuple[str, str]] = []
    pos = 0
    length = len(formula)
    while pos < length:
        if formula[pos].isspace():
            pos += 1
            continue
        match = _TOKEN_RE.match(formula, pos)
        if match is None:
            raise FormulaError(f"Unexpected character {formula[pos]!r} at position {pos}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser.

    expression := term (('+' | '-') term)*
    term       := unary (('*' | '/') unary)*
    unary      := ('+' | '-') unary | primary
    primary    := NUMBER | NAME | NAME '(' expression (',' expression)* ')'
                | '(' expression ')'
    """

    def __init__(self, tokens: list[tuple[str, str]]):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise FormulaError("Empty formula")
        node = self._expression()
        if self.index != len(self.tokens):
            raise FormulaError(f"Unexpected token {self.tokens[self.index][1]!r}")
        return node

    def _peek(self) -> str | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index][1]
        return None

    def _next(self) -> tuple[str, str]:
        if self.index >= len(self.tokens):
            raise FormulaError("Unexpected end of formula")
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _expect(self, text: str) -> None:
        _, value = self._next()
        if value != text:
            raise FormulaError(f"Expected {text!r}, found {value!r}")

    def _expression(self) -> Node:
        node = self._term()
        while self._peek() in ("+", "-"):
            _, op = self._next()
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._peek() in ("*", "/"):
            _, op = self._next()
            node = BinaryOp(op, node, self._unary())
        return node

    def _nested(self, rule: Callable[[], Node]) -> Node:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise FormulaError(f"Formula nested deeper than {MAX_NESTING} levels")
        try:
            return rule()
        finally:
            self.depth -= 1

    def _unary(self) -> Node:
        if self._peek() in ("+", "-"):
            _, op = self._next()
            return UnaryOp(op, self._nested(self._unary))
        return self._primary()

    def _primary(self) -> Node:
        kind, value = self._next()
        if kind == "number":
            return Number(float(value) if "." in value else int(value))
        if kind == "name":
            if self._peek() == "(":
                return self._call(value)
            return Variable(canonical_name(value))
        if value == "(":
            node = self._nested(self._expression)
            self._expect(")")
            return node
        raise FormulaError(f"Unexpected token {value!r}")

    def _call(self, name: str) -> Call:
        func = name.lower()
        if func not in FUNCTIONS:
            raise FormulaError(f"Unknown function {name!r}")
        self._expect("(")
        args = [self._nested(self._expression)]
        while self._peek() == ",":
            self._next()
            args.append(self._nested(self._expression))
        self._expect(")")

        _, min_args, max_args = FUNCTIONS[func]
        if len(args) < min_args or (max_args is not None and len(args) > max_args):
            raise FormulaError(f"{func}() takes {min_args} argument(s), got {len(args)}")
        return Call(func, tuple(args))


@lru_cache(maxsize=512)
def parse(formula: str) -> Node:
    """Parse a formula into an expression tree (cached per formula text).

    Raises:
        FormulaError: If the formula is malformed, longer than
            ``MAX_FORMULA_LENGTH`` or nested deeper than ``MAX_NESTING``.
    """
    if len(formula) > MAX_FORMULA_LENGTH:
        raise FormulaError(f"Formula longer than {MAX_FORMULA_LENGTH} characters")
    return _Parser(tokenize(formula)).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _numeric_variables(context: Mapping[str, Any] | None) -> dict[str, int | float]:
    variables: dict[str, int | float] = {}
    for key, value in (context or {}).items():
        # Equipment terms such as weaponMaterial are strings; formulas only see numbers
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        variables[key.lower()] = value
    return variables


def _walk(node: Node, variables: dict[str, int | float]) -> int | float:
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Variable):
        return variables.get(node.name.lower(), 0)
    if isinstance(node, UnaryOp):
        operand = _walk(node.operand, variables)
        return -operand if node.op == "-" else operand
    if isinstance(node, BinaryOp):
        left = _walk(node.left, variables)
        right = _walk(node.right, variables)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if right == 0:
            raise FormulaError("Division by zero")
        return left / right
    if isinstance(node, Call):
        func, _, _ = FUNCTIONS[node.func]
        return func(*(_walk(arg, variables) for arg in node.args))
    raise FormulaError(f"Unsupported node {node!r}")


def _normalize(value: int | float) -> int | float:
    if isinstance(value, float):
        if not math.isfinite(value):
            raise FormulaError("Result is not a finite number")
        if value.is_integer():
            return int(value)
    return value


class FormulaEvaluator:
    """Evaluates formulas against a mapping of variables.

    Errors never escape: a bad formula evaluates to 0 and is logged.
    """

    def evaluate(self, formula: str, context: Mapping[str, Any] | None = None) -> int | float:
        """Evaluate ``formula`` with variables from ``context``.

        Unknown variables are 0. Returns 0 on any parse or evaluation error.
        """
        if not formula or not isinstance(formula, str):
            logger.warning("Empty formula %r evaluated as 0", formula)
            return 0
        try:
            return _normalize(_walk(parse(formula), _numeric_variables(context)))
        except (FormulaError, ArithmeticError, ValueError, TypeError) as e:
            logger.warning("Formula %r evaluated as 0: %s", formula, e)
            return 0

    def validate(self, formula: str) -> bool:
        """Return True if ``formula`` parses."""
        try:
            parse(formula)
        except (FormulaError, TypeError):
            return False
        return True

    def extract_variables(self, formula: str) -> list[str]:
        """List the canonical variable names a formula references, in order of appearance."""
        try:
            root = parse(formula)
        except (FormulaError, TypeError):
            return []

        names: list[str] = []

        def visit(node: Node) -> None:
            if isinstance(node, Variable):
                if node.name not in names:
                    names.append(node.name)
            elif isinstance(node, UnaryOp):
                visit(node.operand)
            elif isinstance(node, BinaryOp):
                visit(node.left)
                visit(node.right)
            elif isinstance(node, Call):
                for arg in node.args:
                    visit(arg)

        visit(root)
        return names
