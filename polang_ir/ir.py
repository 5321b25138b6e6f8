"""Operations of the Polang IR, their structure, verification and printing."""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterator

from .types import (
    BoolType,
    FloatType,
    FunctionType,
    IntegerType,
    TypeParseError,
    TypeVarType,
    is_numeric,
    parse_type,
    split_top_level,
    types_compatible,
)


class VerificationError(Exception):
    """An operation violates an invariant of the IR."""

    def __init__(self, op: "Operation", message: str):
        super().__init__(f"'{op.name}' op {message}")
        self.op = op


class CmpPredicate(Enum):
    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"


class Value:
    """An SSA value: an operation result or a block argument."""

    __slots__ = ("type", "owner", "index")

    def __init__(self, type_, owner, index: int):
        self.type = type_
        self.owner = owner
        self.index = index

    def __repr__(self) -> str:
        return f"Value({self.type}, #{self.index})"


class Block:
    def __init__(self, arg_types=()):
        self.arguments = [Value(t, self, i) for i, t in enumerate(arg_types)]
        self.operations: list[Operation] = []
        self.parent_region: Region | None = None

    def append(self, op: "Operation") -> "Operation":
        op.parent_block = self
        self.operations.append(op)
        return op

    @property
    def empty(self) -> bool:
        return not self.operations

    @property
    def terminator(self) -> "Operation | None":
        return self.operations[-1] if self.operations else None


class Region:
    def __init__(self, parent_op: "Operation | None" = None):
        self.blocks: list[Block] = []
        self.parent_op = parent_op

    def add_block(self, block: Block) -> Block:
        block.parent_region = self
        self.blocks.append(block)
        return block

    @property
    def empty(self) -> bool:
        return not self.blocks

    @property
    def front(self) -> Block:
        return self.blocks[0]


class Operation:
    name = "polang.op"

    def __init__(self, operands=(), result_types=(), num_regions=0, attributes=None):
        self.operands = list(operands)
        self.results = [Value(t, self, i) for i, t in enumerate(result_types)]
        self.regions = [Region(self) for _ in range(num_regions)]
        self.attributes = dict(attributes or {})
        self.parent_block: Block | None = None

    @property
    def result(self) -> Value:
        return self.results[0]

    @property
    def parent_op(self) -> "Operation | None":
        if self.parent_block is None or self.parent_block.parent_region is None:
            return None
        return self.parent_block.parent_region.parent_op

    def walk(self) -> Iterator["Operation"]:
        """Yield nested operations first, then this one."""
        for region in self.regions:
            for block in region.blocks:
                for op in list(block.operations):
                    yield from op.walk()
        yield self

    def verify(self) -> "Operation":
        """Verify this operation and everything nested in it; raise on failure."""
        for op in self.walk():
            op._verify_self()
        return self

    def _verify_self(self) -> None:
        pass

    def _error(self, message: str) -> VerificationError:
        return VerificationError(self, message)

    def format(self) -> str:
        return "\n".join(self._format(_Printer(), ""))

    # --- printing hooks ---
    def _keyword(self, p: "_Printer") -> str:
        return ""

    def _attr_text(self, elided=()) -> str:
        extra = {k: v for k, v in self.attributes.items() if k not in elided}
        if not extra:
            return ""
        return " {" + ", ".join(f"{k} = {v}" for k, v in extra.items()) + "}"

    def _suffix(self) -> str:
        types = [v.type for v in (self.results or self.operands)]
        return " : " + ", ".join(map(str, types)) if types else ""

    def _format(self, p: "_Printer", pad: str) -> list[str]:
        head = pad + p.define_results(self) + self.name + self._keyword(p)
        if self.operands:
            head += " " + ", ".join(p.use(v) for v in self.operands)
        return [head + self._attr_text() + self._suffix()]


class _Printer:
    def __init__(self):
        self._names: dict[int, str] = {}
        self._next = 0
        self._next_arg = 0

    def _assign(self, value: Value, prefix: str) -> str:
        if prefix == "%arg":
            name = f"%arg{self._next_arg}"
            self._next_arg += 1
        else:
            name = f"%{self._next}"
            self._next += 1
        self._names[id(value)] = name
        return name

    def use(self, value: Value) -> str:
        return self._names.get(id(value)) or self._assign(value, "%")

    def define_results(self, op: Operation) -> str:
        if not op.results:
            return ""
        return ", ".join(self._assign(v, "%") for v in op.results) + " = "

    def define_arg(self, value: Value) -> str:
        return self._assign(value, "%arg")

    def region(self, region: Region, pad: str) -> list[str]:
        lines = []
        for block in region.blocks:
            for op in block.operations:
                lines.extend(op._format(self, pad))
        return lines


class ModuleOp(Operation):
    name = "builtin.module"

    def __init__(self):
        super().__init__(num_regions=1)
        self.regions[0].add_block(Block())

    @property
    def body(self) -> Block:
        return self.regions[0].front

    def lookup(self, name: str) -> "FuncOp | None":
        for op in self.body.operations:
            if isinstance(op, FuncOp) and op.sym_name == name:
                return op
        return None

    def _format(self, p, pad):
        return [pad + "module {", *p.region(self.regions[0], pad + "  "), pad + "}"]


class FuncOp(Operation):
    name = "polang.func"

    def __init__(self, sym_name: str, function_type: FunctionType, captures=()):
        attrs = {"sym_name": sym_name, "function_type": function_type}
        if captures:
            attrs["captures"] = tuple(captures)
        super().__init__(num_regions=1, attributes=attrs)

    @property
    def sym_name(self) -> str:
        return self.attributes["sym_name"]

    @property
    def function_type(self) -> FunctionType:
        return self.attributes["function_type"]

    @function_type.setter
    def function_type(self, value: FunctionType) -> None:
        self.attributes["function_type"] = value

    @property
    def captures(self) -> tuple:
        return self.attributes.get("captures", ())

    @property
    def result_types(self) -> tuple:
        return self.function_type.results

    @property
    def argument_types(self) -> tuple:
        return self.function_type.inputs

    @property
    def body(self) -> Region:
        return self.regions[0]

    def add_entry_block(self) -> Block:
        return self.body.add_block(Block(self.function_type.inputs))

    def _format(self, p, pad):
        args = []
        if not self.body.empty:
            args = [f"{p.define_arg(a)}: {a.type}" for a in self.body.front.arguments]
        else:
            args = [str(t) for t in self.argument_types]
        head = f"{pad}polang.func @{self.sym_name}({', '.join(args)})"
        if self.result_types:
            head += " -> " + ", ".join(map(str, self.result_types))
        head += self._attr_text(elided=("sym_name", "function_type"))
        if self.body.empty:
            return [head]
        return [head + " {", *p.region(self.body, pad + "  "), pad + "}"]


class CallOp(Operation):
    name = "polang.call"

    def __init__(self, callee: str, result_types, operands=()):
        super().__init__(operands, result_types, attributes={"callee": callee})

    @property
    def callee(self) -> str:
        return self.attributes["callee"]

    def _format(self, p, pad):
        args = ", ".join(p.use(v) for v in self.operands)
        fn = FunctionType([v.type for v in self.operands], [v.type for v in self.results])
        return [f"{pad}{p.define_results(self)}{self.name} @{self.callee}({args}) : {fn}"]

    def _verify_self(self):
        scope = self.parent_op
        while scope is not None and not isinstance(scope, ModuleOp):
            scope = scope.parent_op
        func = scope.lookup(self.callee) if scope is not None else None
        if func is None:
            raise self._error(f"references undefined function '{self.callee}'")
        ftype = func.function_type
        if len(self.operands) != len(ftype.inputs):
            raise self._error(
                f"function '{self.callee}' expects {len(ftype.inputs)} "
                f"argument(s) but got {len(self.operands)}"
            )
        for number, (arg, expected) in enumerate(zip(self.operands, ftype.inputs), 1):
            if not types_compatible(arg.type, expected):
                raise self._error(
                    f"argument {number} has type {arg.type} but function expects {expected}"
                )
        if ftype.results and self.results:
            if not types_compatible(self.result.type, ftype.results[0]):
                raise self._error(
                    f"result type {self.result.type} does not match function "
                    f"return type {ftype.results[0]}"
                )


class ReturnOp(Operation):
    name = "polang.return"

    def __init__(self, value: Value | None = None):
        super().__init__([] if value is None else [value])

    @property
    def value(self) -> Value | None:
        return self.operands[0] if self.operands else None

    def _verify_self(self):
        func = self.parent_op
        if not isinstance(func, FuncOp):
            raise self._error("must be inside a polang.func")
        results = func.result_types
        if self.value is not None:
            if not results:
                raise self._error("returns a value but function has no return type")
            if not types_compatible(self.value.type, results[0]):
                raise self._error(
                    f"returns {self.value.type} but function expects {results[0]}"
                )
        elif results:
            raise self._error(f"must return a value of type {results[0]}")


class YieldOp(Operation):
    name = "polang.yield"

    def __init__(self, value: Value):
        super().__init__([value])

    @property
    def value(self) -> Value:
        return self.operands[0]


class IfOp(Operation):
    name = "polang.if"

    def __init__(self, result_type, condition: Value):
        super().__init__([condition], [result_type], num_regions=2)
        for region in self.regions:
            region.add_block(Block())

    @property
    def condition(self) -> Value:
        return self.operands[0]

    @property
    def then_region(self) -> Region:
        return self.regions[0]

    @property
    def else_region(self) -> Region:
        return self.regions[1]

    def _format(self, p, pad):
        head = f"{pad}{p.define_results(self)}{self.name} {p.use(self.condition)} -> {self.result.type} {{"
        inner = pad + "  "
        return [head, *p.region(self.then_region, inner), pad + "} else {",
                *p.region(self.else_region, inner), pad + "}"]

    def _verify_self(self):
        yields = {}
        for label, region in (("then", self.then_region), ("else", self.else_region)):
            if region.empty or region.front.empty:
                raise self._error(f"{label} region must not be empty")
        for label, region in (("then", self.then_region), ("else", self.else_region)):
            term = region.front.terminator
            if not isinstance(term, YieldOp):
                raise self._error(f"{label} region must end with polang.yield")
            yields[label] = term
        for label, term in yields.items():
            if not types_compatible(term.value.type, self.result.type):
                raise self._error(
                    f"{label} branch yields {term.value.type} but if expects {self.result.type}"
                )


class ConstantIntegerOp(Operation):
    name = "polang.constant_integer"

    def __init__(self, result_type, value: int, attributes=None):
        attrs = dict(attributes or {})
        attrs["value"] = int(value)
        super().__init__((), [result_type], attributes=attrs)

    @property
    def value(self) -> int:
        return self.attributes["value"]

    def _keyword(self, p):
        return f" {self.value}"

    def _attr_text(self, elided=("value",)):
        return super()._attr_text(elided)


class ConstantFloatOp(Operation):
    name = "polang.constant_float"

    def __init__(self, result_type, value: float, attributes=None):
        attrs = dict(attributes or {})
        attrs["value"] = float(value)
        super().__init__((), [result_type], attributes=attrs)

    @property
    def value(self) -> float:
        return self.attributes["value"]

    def _keyword(self, p):
        return f" {self.value!r}"

    def _attr_text(self, elided=("value",)):
        return super()._attr_text(elided)


class ConstantBoolOp(Operation):
    name = "polang.constant_bool"

    def __init__(self, value: bool):
        super().__init__((), [BoolType()], attributes={"value": bool(value)})

    @property
    def value(self) -> bool:
        return self.attributes["value"]

    def _keyword(self, p):
        return " true" if self.value else " false"

    def _attr_text(self, elided=("value",)):
        return super()._attr_text(elided)


class _BinaryArithOp(Operation):
    def __init__(self, result_type, lhs: Value, rhs: Value):
        super().__init__([lhs, rhs], [result_type])

    @property
    def lhs(self) -> Value:
        return self.operands[0]

    @property
    def rhs(self) -> Value:
        return self.operands[1]

    def _verify_self(self):
        if not types_compatible(self.lhs.type, self.rhs.type):
            raise self._error("operand types must be compatible")
        if not types_compatible(self.lhs.type, self.result.type):
            raise self._error("result type must be compatible with operands")


class AddOp(_BinaryArithOp):
    name = "polang.add"


class SubOp(_BinaryArithOp):
    name = "polang.sub"


class MulOp(_BinaryArithOp):
    name = "polang.mul"


class DivOp(_BinaryArithOp):
    name = "polang.div"


class CastOp(Operation):
    name = "polang.cast"

    def __init__(self, result_type, input_: Value):
        super().__init__([input_], [result_type])

    @property
    def input(self) -> Value:
        return self.operands[0]

    def _suffix(self):
        return f" : {self.input.type} to {self.result.type}"

    def _verify_self(self):
        src, dst = self.input.type, self.result.type
        if isinstance(src, TypeVarType) or isinstance(dst, TypeVarType):
            return
        if not is_numeric(src):
            raise self._error(f"input type must be numeric, got {src}")
        if not is_numeric(dst):
            raise self._error(f"result type must be numeric, got {dst}")


class CmpOp(Operation):
    name = "polang.cmp"

    def __init__(self, predicate: CmpPredicate, lhs: Value, rhs: Value):
        super().__init__([lhs, rhs], [BoolType()], attributes={"predicate": predicate})

    @property
    def predicate(self) -> CmpPredicate:
        return self.attributes["predicate"]

    @property
    def lhs(self) -> Value:
        return self.operands[0]

    @property
    def rhs(self) -> Value:
        return self.operands[1]

    def _keyword(self, p):
        return f" {self.predicate.value},"

    def _attr_text(self, elided=("predicate",)):
        return super()._attr_text(elided)

    def _suffix(self):
        return f" : {self.lhs.type}"

    def _verify_self(self):
        if not types_compatible(self.lhs.type, self.rhs.type):
            raise self._error("comparison operand types must be compatible")


class AllocaOp(Operation):
    """Stack slot for a named variable holding `element_type`."""

    name = "polang.alloca"

    def __init__(self, var_name: str, element_type, is_mutable: bool = False, result_type=None):
        super().__init__(
            (),
            [element_type if result_type is None else result_type],
            attributes={"name": var_name, "element_type": element_type, "is_mutable": bool(is_mutable)},
        )

    @property
    def var_name(self) -> str:
        return self.attributes["name"]

    @property
    def element_type(self):
        return self.attributes["element_type"]

    @property
    def is_mutable(self) -> bool:
        return self.attributes["is_mutable"]

    def _keyword(self, p):
        return f' "{self.var_name}"' + (" mutable" if self.is_mutable else "")

    def _attr_text(self, elided=("name", "element_type", "is_mutable")):
        return super()._attr_text(elided)

    def _suffix(self):
        return f" : {self.element_type}"


class PrintOp(Operation):
    name = "polang.print"

    def __init__(self, value: Value):
        super().__init__([value])

    @property
    def value(self) -> Value:
        return self.operands[0]


def verify(module: Operation) -> Operation:
    """Verify a module (or any operation tree); raise VerificationError on failure."""
    return module.verify()


_PREFIX = r"^\s*(?:%[\w.]+\s*=\s*)?(?:{name}\s+)?"
_INT_RE = re.compile(
    _PREFIX.format(name=r"polang\.constant_integer")
    + r"(?P<value>[-+]?\d+)\s*(?P<attrs>\{[^}]*\})?\s*:\s*(?P<type>.+?)\s*$"
)
_FLOAT_RE = re.compile(
    _PREFIX.format(name=r"polang\.constant_float")
    + r"(?P<value>[-+]?(?:\d+\.?\d*(?:[eE][-+]?\d+)?|inf|nan))\s*(?P<attrs>\{[^}]*\})?"
    r"\s*:\s*(?P<type>.+?)\s*$"
)


def _parse_attrs(text: str | None) -> dict:
    if not text:
        return {}
    attrs = {}
    for item in split_top_level(text[1:-1]):
        if not item:
            continue
        key, sep, val = item.partition("=")
        if not sep:
            raise TypeParseError(f"expected '=' in attribute: {item}")
        attrs[key.strip()] = val.strip()
    return attrs


def parse_constant_integer(text: str) -> ConstantIntegerOp:
    """Parse the textual form of a polang.constant_integer operation."""
    m = _INT_RE.match(text)
    if not m:
        raise TypeParseError(f"malformed integer constant: {text}")
    result_type = parse_type(m.group("type"))
    if not isinstance(result_type, (IntegerType, TypeVarType)):
        raise TypeParseError("expected polang.integer or typevar type")
    return ConstantIntegerOp(result_type, int(m.group("value")), _parse_attrs(m.group("attrs")))


def parse_constant_float(text: str) -> ConstantFloatOp:
    """Parse the textual form of a polang.constant_float operation."""
    m = _FLOAT_RE.match(text)
    if not m:
        raise TypeParseError(f"malformed float constant: {text}")
    result_type = parse_type(m.group("type"))
    if not isinstance(result_type, (FloatType, TypeVarType)):
        raise TypeParseError("expected polang.float or typevar type")
    return ConstantFloatOp(result_type, float(m.group("value")), _parse_attrs(m.group("attrs")))