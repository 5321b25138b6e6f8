# polang-ir

An in-memory intermediate representation for the Polang language. It gives you
the types, the operations, structural verification, inference of function
return types, and lowering to a small set of standard operations.

## Installing

```
pip install .
```

Install the test extra to run the test suite:

```
pip install ".[test]"
pytest
```

## What is in it

- `polang_ir.types`: the types of the IR.
  - `IntegerType` (a bit width and a `Signedness`, with `is_signed()` and
    `is_unsigned()`), `FloatType` (a bit width), `BoolType`, `TypeVarType`
    (an id and a `TypeVarKind`: `ANY`, `INTEGER` or `FLOAT`) and
    `FunctionType` (input and result types).
  - Each type prints in its textual form, for example
    `!polang.integer<64, signed>`, `!polang.float<32>`, `!polang.bool`,
    `!polang.typevar<3, integer>` and `(!polang.bool) -> !polang.float<64>`.
  - `parse_type(text)` reads that textual form back and raises
    `TypeParseError` on malformed input, including an unknown type variable
    kind.
  - `types_compatible(lhs, rhs)` is true when the two types are equal or
    either one is a type variable.
  - `is_numeric(type_)` is true for integer and float types.
- `polang_ir.ir`: values, blocks, regions and operations.
  - The operations are `FuncOp`, `CallOp`, `ReturnOp`, `IfOp`, `YieldOp`,
    `ConstantIntegerOp`, `ConstantFloatOp`, `ConstantBoolOp`, `AddOp`,
    `SubOp`, `MulOp`, `DivOp`, `CastOp`, `CmpOp` (with a `CmpPredicate`),
    `AllocaOp` and `PrintOp`. Functions sit inside a `ModuleOp`, which can
    `lookup(name)` a function by its symbol name.
  - `FuncOp.add_entry_block()` creates a block whose arguments have the
    function's input types; `Block.append(op)` adds an operation and returns
    it. `IfOp` comes with an empty block in each of its two regions.
  - `Operation.walk()` yields nested operations first, then the operation
    itself. `Operation.format()` renders an operation tree as text.
  - `verify(module)` (or `Operation.verify()`) checks every operation. When a
    check fails it raises `VerificationError`, whose message names the
    operation, for example
    `'polang.if' op then branch yields !polang.float<64> but if expects !polang.integer<64, signed>`.
    Calls are checked against the function they name: it must exist, and the
    argument count, argument types and result type must match.
  - `parse_constant_integer(text)` and `parse_constant_float(text)` read the
    textual form of a single constant operation, such as
    `%0 = polang.constant_integer 42 : !polang.integer<64, signed>`.
- `polang_ir.type_inference`: `infer_return_types(module)` gives each function
  that has no declared result the type of the value it returns, in place.
  Functions that already declare a result, or return nothing, are left alone.
- `polang_ir.std`: the standard-level types (`StdIntegerType`, `StdFloatType`,
  `MemRefType`), the predicates `FloatPredicate` and `IntPredicate`, and
  `TypeConverter`.
  - `TypeConverter.convert` maps integers to signless integers of the same
    width, 32-bit floats to `f32` and other floats to `f64`, and booleans to
    `i1`. Type variables that are still unresolved fall back to defaults: a
    float variable becomes `f64`, any other variable becomes `i64`.
  - `float_predicate(predicate)` gives the ordered float predicate and
    `int_predicate(predicate, unsigned)` the signed or unsigned integer
    predicate for a `CmpPredicate`.
- `polang_ir.lowering`: `lower_to_standard(module)` builds a new module of
  `StdOperation` trees (`arith.*`, `func.*`, `scf.if`/`scf.yield`,
  `memref.alloca`, `llvm.call_intrinsic`), leaving the input untouched.
  - Functions carrying a `polang.polymorphic` attribute are dropped.
  - Print operations are erased.
  - Division and comparison pick signed or unsigned forms from the original
    integer type.
  - Float-to-integer casts become saturating conversion intrinsics such as
    `llvm.fptosi.sat.i64.f64`; casts between types of the same width pass the
    value through.
  - A module that cannot be lowered raises `ConversionError`.

## Example

```python
from polang_ir.ir import FuncOp, ModuleOp, ReturnOp, ConstantIntegerOp, verify
from polang_ir.types import FunctionType, IntegerType, Signedness
from polang_ir.lowering import lower_to_standard

i64 = IntegerType(64, Signedness.SIGNED)
module = ModuleOp()
func = module.body.append(FuncOp("__polang_entry", FunctionType((), (i64,))))
entry = func.add_entry_block()
const = entry.append(ConstantIntegerOp(i64, 42))
entry.append(ReturnOp(const.result))

verify(module)
print(module.format())

lowered = lower_to_standard(module)
print(lowered.format())
```

## What it does not do

- There is no command and no reader for Polang source text: IR is built in
  Python, and only types and single constant operations can be parsed from
  text.
- Type variables are not solved. `infer_return_types` fills in missing
  function result types only; unresolved variables are defaulted during
  lowering.
- Lowering stops at the standard operations. Nothing is emitted as machine
  code or executed.