"""Lowering of the Polang IR to standard operations (arith, func, scf, memref)."""

from __future__ import annotations

import math
import struct
from typing import Iterator

from .ir import (
    AddOp,
    AllocaOp,
    Block,
    CallOp,
    CastOp,
    CmpOp,
    ConstantBoolOp,
    ConstantFloatOp,
    ConstantIntegerOp,
    DivOp,
    FuncOp,
    IfOp,
    ModuleOp,
    MulOp,
    Operation,
    PrintOp,
    Region,
    ReturnOp,
    SubOp,
    Value,
    YieldOp,
    _Printer,
)
from .std import (
    MemRefType,
    StdFloatType,
    StdIntegerType,
    TypeConverter,
    float_predicate,
    int_predicate,
)
from .types import FloatType, FunctionType, IntegerType


class ConversionError(Exception):
    """The module could not be lowered to standard operations."""


class StdOperation:
    """An operation of a standard dialect, produced by lowering."""

    def __init__(self, name: str, operands=(), result_types=(), attributes=None, num_regions=0):
        self.name = name
        self.operands = list(operands)
        self.results = [Value(t, self, i) for i, t in enumerate(result_types)]
        self.regions = [Region(self) for _ in range(num_regions)]
        self.attributes = dict(attributes or {})
        self.parent_block: Block | None = None

    @property
    def result(self) -> Value:
        return self.results[0]

    def walk(self) -> Iterator["StdOperation"]:
        """Yield nested operations first, then this one."""
        for region in self.regions:
            for block in region.blocks:
                for op in list(block.operations):
                    yield from op.walk()
        yield self

    def format(self) -> str:
        return "\n".join(self._format(_Printer(), ""))

    def _format(self, p: _Printer, pad: str) -> list[str]:
        head = pad + p.define_results(self) + self.name
        if self.operands:
            head += " " + ", ".join(p.use(v) for v in self.operands)
        if self.attributes:
            items = ", ".join(f"{k} = {_attr_text(v)}" for k, v in self.attributes.items())
            head += " {" + items + "}"
        if self.results:
            head += " : " + ", ".join(str(v.type) for v in self.results)
        if not self.regions:
            return [head]
        lines = [head + " {"]
        for number, region in enumerate(self.regions):
            if number:
                lines.append(pad + "} {")
            lines.extend(p.region(region, pad + "  "))
        lines.append(pad + "}")
        return lines

    def __repr__(self) -> str:
        return f"StdOperation({self.name!r})"


def _attr_text(value) -> str:
    return str(getattr(value, "value", value)) if hasattr(value, "name") else str(value)


def _sign_extend(value: int, width: int) -> int:
    mask = 1 << width
    value &= mask - 1
    if value >= mask >> 1:
        value -= mask
    return value


def _to_f32(value: float) -> float:
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


_ARITH_BASE = {AddOp: "add", SubOp: "sub", MulOp: "mul"}

# Operations that are dropped during lowering: printing has no runtime support yet.
_ERASED = (PrintOp,)


class _Lowering:
    def __init__(self) -> None:
        self.types = TypeConverter()
        self.values: dict[Value, Value] = {}

    # --- helpers ---
    def lookup(self, value: Value) -> Value:
        try:
            return self.values[value]
        except KeyError:
            raise ConversionError(f"use of a value that was not lowered: {value!r}") from None

    def emit(self, block: Block, name, operands=(), result_types=(), attributes=None, num_regions=0):
        return block.append(StdOperation(name, operands, result_types, attributes, num_regions))

    def replace(self, op: Operation, new: StdOperation) -> None:
        for old, fresh in zip(op.results, new.results):
            self.values[old] = fresh

    def region(self, src: Region, dst: Region) -> None:
        for block in src.blocks:
            new_block = dst.add_block(Block([self.types.convert(a.type) for a in block.arguments]))
            for old, fresh in zip(block.arguments, new_block.arguments):
                self.values[old] = fresh
            for op in block.operations:
                self.op(op, new_block)

    def op(self, op: Operation, block: Block) -> None:
        if isinstance(op, _ERASED):
            return
        handler = _HANDLERS.get(type(op))
        if handler is None:
            raise ConversionError(f"failed to legalize operation '{op.name}'")
        handler(self, op, block)

    # --- constants ---
    def constant_integer(self, op: ConstantIntegerOp, block: Block) -> None:
        rtype = op.result.type
        width = rtype.width if isinstance(rtype, IntegerType) else 64
        value = _sign_extend(op.value, width)
        self.replace(op, self.emit(block, "arith.constant", (), [StdIntegerType(width)], {"value": value}))

    def constant_float(self, op: ConstantFloatOp, block: Block) -> None:
        rtype = op.result.type
        width = 32 if isinstance(rtype, FloatType) and rtype.width == 32 else 64
        value = _to_f32(op.value) if width == 32 else op.value
        self.replace(op, self.emit(block, "arith.constant", (), [StdFloatType(width)], {"value": value}))

    def constant_bool(self, op: ConstantBoolOp, block: Block) -> None:
        value = 1 if op.value else 0
        self.replace(op, self.emit(block, "arith.constant", (), [StdIntegerType(1)], {"value": value}))

    # --- arithmetic ---
    def arith(self, op, block: Block) -> None:
        lhs, rhs = self.lookup(op.lhs), self.lookup(op.rhs)
        suffix = "i" if isinstance(lhs.type, StdIntegerType) else "f"
        name = f"arith.{_ARITH_BASE[type(op)]}{suffix}"
        self.replace(op, self.emit(block, name, [lhs, rhs], [lhs.type]))

    def div(self, op: DivOp, block: Block) -> None:
        lhs, rhs = self.lookup(op.lhs), self.lookup(op.rhs)
        orig = op.lhs.type
        if isinstance(orig, FloatType):
            name = "arith.divf"
        elif isinstance(orig, IntegerType):
            name = "arith.divui" if orig.is_unsigned() else "arith.divsi"
        elif isinstance(lhs.type, StdIntegerType):
            name = "arith.divsi"
        else:
            name = "arith.divf"
        self.replace(op, self.emit(block, name, [lhs, rhs], [lhs.type]))

    # --- casts ---
    def cast(self, op: CastOp, block: Block) -> None:
        source = self.lookup(op.input)
        in_type = source.type
        out_type = self.types.convert(op.result.type)
        orig_in, orig_out = op.input.type, op.result.type
        in_int = isinstance(in_type, StdIntegerType)
        out_int = isinstance(out_type, StdIntegerType)

        if in_int and out_int:
            if in_type.width < out_type.width:
                signed = not (isinstance(orig_in, IntegerType) and orig_in.is_unsigned())
                name = "arith.extsi" if signed else "arith.extui"
            elif in_type.width > out_type.width:
                name = "arith.trunci"
            else:
                self.values[op.result] = source
                return
            self.replace(op, self.emit(block, name, [source], [out_type]))
        elif not in_int and not out_int:
            if in_type.width < out_type.width:
                name = "arith.extf"
            elif in_type.width > out_type.width:
                name = "arith.truncf"
            else:
                self.values[op.result] = source
                return
            self.replace(op, self.emit(block, name, [source], [out_type]))
        elif in_int:
            signed = not (isinstance(orig_in, IntegerType) and orig_in.is_unsigned())
            name = "arith.sitofp" if signed else "arith.uitofp"
            self.replace(op, self.emit(block, name, [source], [out_type]))
        else:
            # Saturating conversion clamps to the representable range.
            signed = not (isinstance(orig_out, IntegerType) and orig_out.is_unsigned())
            kind = "fptosi" if signed else "fptoui"
            intrinsic = f"llvm.{kind}.sat.i{out_type.width}.f{in_type.width}"
            self.replace(
                op,
                self.emit(block, "llvm.call_intrinsic", [source], [out_type], {"intrin": intrinsic}),
            )

    # --- comparison ---
    def cmp(self, op: CmpOp, block: Block) -> None:
        lhs, rhs = self.lookup(op.lhs), self.lookup(op.rhs)
        orig = op.lhs.type
        if isinstance(orig, FloatType):
            name, pred = "arith.cmpf", float_predicate(op.predicate)
        elif isinstance(orig, IntegerType):
            name, pred = "arith.cmpi", int_predicate(op.predicate, orig.is_unsigned())
        elif isinstance(lhs.type, StdIntegerType):
            name, pred = "arith.cmpi", int_predicate(op.predicate, False)
        else:
            name, pred = "arith.cmpf", float_predicate(op.predicate)
        self.replace(op, self.emit(block, name, [lhs, rhs], [StdIntegerType(1)], {"predicate": pred}))

    # --- functions ---
    def func(self, op: FuncOp, block: Block) -> None:
        # Polymorphic templates are dropped; only their specialisations remain.
        if "polang.polymorphic" in op.attributes:
            return
        ftype = FunctionType(
            [self.types.convert(t) for t in op.argument_types],
            [self.types.convert(t) for t in op.result_types],
        )
        new = self.emit(
            block, "func.func", attributes={"sym_name": op.sym_name, "function_type": ftype}, num_regions=1
        )
        self.region(op.body, new.regions[0])

    def call(self, op: CallOp, block: Block) -> None:
        operands = [self.lookup(v) for v in op.operands]
        results = [self.types.convert(v.type) for v in op.results]
        self.replace(op, self.emit(block, "func.call", operands, results, {"callee": op.callee}))

    def return_(self, op: ReturnOp, block: Block) -> None:
        self.emit(block, "func.return", [self.lookup(v) for v in op.operands])

    # --- control flow ---
    def if_(self, op: IfOp, block: Block) -> None:
        result_type = self.types.convert(op.result.type)
        new = self.emit(block, "scf.if", [self.lookup(op.condition)], [result_type], num_regions=2)
        self.region(op.then_region, new.regions[0])
        self.region(op.else_region, new.regions[1])
        self.replace(op, new)

    def yield_(self, op: YieldOp, block: Block) -> None:
        self.emit(block, "scf.yield", [self.lookup(v) for v in op.operands])

    # --- variables ---
    def alloca(self, op: AllocaOp, block: Block) -> None:
        memref = MemRefType(self.types.convert(op.element_type))
        self.replace(op, self.emit(block, "memref.alloca", (), [memref]))


_HANDLERS = {
    ConstantIntegerOp: _Lowering.constant_integer,
    ConstantFloatOp: _Lowering.constant_float,
    ConstantBoolOp: _Lowering.constant_bool,
    AddOp: _Lowering.arith,
    SubOp: _Lowering.arith,
    MulOp: _Lowering.arith,
    DivOp: _Lowering.div,
    CastOp: _Lowering.cast,
    CmpOp: _Lowering.cmp,
    FuncOp: _Lowering.func,
    CallOp: _Lowering.call,
    ReturnOp: _Lowering.return_,
    IfOp: _Lowering.if_,
    YieldOp: _Lowering.yield_,
    AllocaOp: _Lowering.alloca,
}


def lower_to_standard(module: ModuleOp) -> StdOperation:
    """Lower a Polang module to a new module of standard operations."""
    if not isinstance(module, ModuleOp):
        raise ConversionError("expected a module to lower")
    out = StdOperation("builtin.module", num_regions=1)
    body = out.regions[0].add_block(Block())
    lowering = _Lowering()
    for op in module.body.operations:
        lowering.op(op, body)
    return out