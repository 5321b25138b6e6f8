"""Types of the Polang IR: integers, floats, booleans, type variables and functions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class TypeParseError(ValueError):
    """Raised when textual IR cannot be parsed."""


class Signedness(Enum):
    SIGNED = "signed"
    UNSIGNED = "unsigned"


class TypeVarKind(Enum):
    """Constraint on what a type variable may be resolved to."""

    ANY = "any"
    INTEGER = "integer"
    FLOAT = "float"


@dataclass(frozen=True)
class IntegerType:
    width: int = 64
    signedness: Signedness = Signedness.SIGNED

    def is_signed(self) -> bool:
        return self.signedness is Signedness.SIGNED

    def is_unsigned(self) -> bool:
        return self.signedness is Signedness.UNSIGNED

    def __str__(self) -> str:
        return f"!polang.integer<{self.width}, {self.signedness.value}>"


@dataclass(frozen=True)
class FloatType:
    width: int = 64

    def __str__(self) -> str:
        return f"!polang.float<{self.width}>"


@dataclass(frozen=True)
class BoolType:
    def __str__(self) -> str:
        return "!polang.bool"


@dataclass(frozen=True)
class TypeVarType:
    id: int
    kind: TypeVarKind = TypeVarKind.ANY

    def __str__(self) -> str:
        if self.kind is TypeVarKind.ANY:
            return f"!polang.typevar<{self.id}>"
        return f"!polang.typevar<{self.id}, {self.kind.value}>"


PolangType = Union[IntegerType, FloatType, BoolType, TypeVarType]


@dataclass(frozen=True)
class FunctionType:
    inputs: tuple = field(default=())
    results: tuple = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "results", tuple(self.results))

    def __str__(self) -> str:
        args = ", ".join(map(str, self.inputs))
        if len(self.results) == 1:
            res = str(self.results[0])
        else:
            res = "(" + ", ".join(map(str, self.results)) + ")"
        return f"({args}) -> {res}"


def types_compatible(lhs, rhs) -> bool:
    """Equal types, or either side a type variable still to be resolved."""
    return lhs == rhs or isinstance(lhs, TypeVarType) or isinstance(rhs, TypeVarType)


def is_numeric(type_) -> bool:
    return isinstance(type_, (IntegerType, FloatType))


_INTEGER_RE = re.compile(r"!polang\.integer<\s*(\d+)\s*,\s*(\w+)\s*>")
_FLOAT_RE = re.compile(r"!polang\.float<\s*(\d+)\s*>")
_TYPEVAR_RE = re.compile(r"!polang\.typevar<\s*(\d+)\s*(?:,\s*(\w+)\s*)?>")
_TYPEVAR_ANY_RE = re.compile(r"!polang\.typevar<\s*(\d+)\s*,\s*(.*?)\s*>")


def split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside <> or ()."""
    parts, depth, current = [], 0, []
    for ch in text:
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts


def _matching_paren(text: str) -> int:
    depth = 0
    for pos, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return pos
    raise TypeParseError(f"unbalanced parentheses in type: {text}")


def parse_type(text: str):
    """Parse the textual form of a Polang type or function type."""
    s = text.strip()
    if not s:
        raise TypeParseError("expected type")
    if s.startswith("("):
        close = _matching_paren(s)
        inputs = [parse_type(t) for t in split_top_level(s[1:close])]
        rest = s[close + 1:].strip()
        if not rest.startswith("->"):
            raise TypeParseError(f"expected '->' in function type: {text}")
        res = rest[2:].strip()
        if res.startswith("(") and _matching_paren(res) == len(res) - 1:
            results = [parse_type(t) for t in split_top_level(res[1:-1])]
        else:
            results = [parse_type(res)]
        return FunctionType(inputs, results)
    if s == "!polang.bool":
        return BoolType()
    if m := _INTEGER_RE.fullmatch(s):
        try:
            sign = Signedness(m.group(2))
        except ValueError:
            raise TypeParseError(f"invalid signedness: {m.group(2)}") from None
        return IntegerType(int(m.group(1)), sign)
    if m := _FLOAT_RE.fullmatch(s):
        return FloatType(int(m.group(1)))
    if m := _TYPEVAR_RE.fullmatch(s):
        kind = TypeVarKind.ANY
        if m.group(2) is not None:
            try:
                kind = TypeVarKind(m.group(2))
            except ValueError:
                raise TypeParseError(f"invalid type variable kind: {m.group(2)}") from None
        return TypeVarType(int(m.group(1)), kind)
    if m := _TYPEVAR_ANY_RE.fullmatch(s):
        raise TypeParseError(f"invalid type variable kind: {m.group(2)}")
    raise TypeParseError(f"unknown type: {text}")