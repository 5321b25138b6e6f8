"""Standard-dialect types, predicates and the conversion from Polang types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .ir import CmpPredicate
from .types import BoolType, FloatType, IntegerType, TypeVarKind, TypeVarType


@dataclass(frozen=True)
class StdIntegerType:
    """Signless integer; signedness lives in the operations that use it."""

    width: int

    def __str__(self) -> str:
        return f"i{self.width}"


@dataclass(frozen=True)
class StdFloatType:
    width: int

    def __str__(self) -> str:
        return f"f{self.width}"


@dataclass(frozen=True)
class MemRefType:
    element_type: object
    shape: tuple = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "shape", tuple(self.shape))

    def __str__(self) -> str:
        dims = "".join(f"{d}x" for d in self.shape)
        return f"memref<{dims}{self.element_type}>"


class FloatPredicate(Enum):
    OEQ = "oeq"
    ONE = "one"
    OLT = "olt"
    OLE = "ole"
    OGT = "ogt"
    OGE = "oge"


class IntPredicate(Enum):
    EQ = "eq"
    NE = "ne"
    SLT = "slt"
    SLE = "sle"
    SGT = "sgt"
    SGE = "sge"
    ULT = "ult"
    ULE = "ule"
    UGT = "ugt"
    UGE = "uge"


class TypeConverter:
    """Maps Polang types to standard types; other types pass through unchanged."""

    def convert(self, type_):
        if isinstance(type_, IntegerType):
            return StdIntegerType(type_.width)
        if isinstance(type_, FloatType):
            return StdFloatType(32 if type_.width == 32 else 64)
        if isinstance(type_, BoolType):
            return StdIntegerType(1)
        if isinstance(type_, TypeVarType):
            # Unresolved type variables fall back to a default per kind.
            if type_.kind is TypeVarKind.FLOAT:
                return StdFloatType(64)
            return StdIntegerType(64)
        return type_


_FLOAT_PREDICATES = {
    CmpPredicate.EQ: FloatPredicate.OEQ,
    CmpPredicate.NE: FloatPredicate.ONE,
    CmpPredicate.LT: FloatPredicate.OLT,
    CmpPredicate.LE: FloatPredicate.OLE,
    CmpPredicate.GT: FloatPredicate.OGT,
    CmpPredicate.GE: FloatPredicate.OGE,
}

_INT_PREDICATES = {
    CmpPredicate.EQ: (IntPredicate.EQ, IntPredicate.EQ),
    CmpPredicate.NE: (IntPredicate.NE, IntPredicate.NE),
    CmpPredicate.LT: (IntPredicate.SLT, IntPredicate.ULT),
    CmpPredicate.LE: (IntPredicate.SLE, IntPredicate.ULE),
    CmpPredicate.GT: (IntPredicate.SGT, IntPredicate.UGT),
    CmpPredicate.GE: (IntPredicate.SGE, IntPredicate.UGE),
}


def float_predicate(predicate: CmpPredicate) -> FloatPredicate:
    """Ordered floating-point predicate for a Polang comparison."""
    try:
        return _FLOAT_PREDICATES[predicate]
    except KeyError:
        raise ValueError(f"unknown comparison predicate: {predicate!r}") from None


def int_predicate(predicate: CmpPredicate, unsigned: bool) -> IntPredicate:
    """Integer predicate for a Polang comparison, signed or unsigned."""
    try:
        signed_pred, unsigned_pred = _INT_PREDICATES[predicate]
    except KeyError:
        raise ValueError(f"unknown comparison predicate: {predicate!r}") from None
    return unsigned_pred if unsigned else signed_pred