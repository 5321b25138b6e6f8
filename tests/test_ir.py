import pytest

from polang_ir.ir import (
    AddOp,
    AllocaOp,
    Block,
    CallOp,
    CastOp,
    CmpOp,
    CmpPredicate,
    ConstantBoolOp,
    ConstantFloatOp,
    ConstantIntegerOp,
    DivOp,
    FuncOp,
    IfOp,
    ModuleOp,
    MulOp,
    PrintOp,
    ReturnOp,
    SubOp,
    VerificationError,
    YieldOp,
    parse_constant_float,
    parse_constant_integer,
    verify,
)
from polang_ir.types import (
    BoolType,
    FloatType,
    FunctionType,
    IntegerType,
    TypeParseError,
    TypeVarKind,
    TypeVarType,
)

I64 = IntegerType(64)
F64 = FloatType(64)
BOOL = BoolType()


def make_func(name, fn_type, module=None):
    module = module or ModuleOp()
    func = module.body.append(FuncOp(name, fn_type))
    return module, func, func.add_entry_block()


def verify_error(module):
    with pytest.raises(VerificationError) as info:
        verify(module)
    return str(info.value)


def test_if_empty_then_region():
    module, _, entry = make_func("test", FunctionType([], [I64]))
    cond = entry.append(ConstantBoolOp(True))
    if_op = entry.append(IfOp(I64, cond.result))
    val = if_op.else_region.front.append(ConstantIntegerOp(I64, 0))
    if_op.else_region.front.append(YieldOp(val.result))
    assert "then region" in verify_error(module)


def test_if_empty_else_region():
    module, _, entry = make_func("test", FunctionType([], [I64]))
    cond = entry.append(ConstantBoolOp(True))
    if_op = entry.append(IfOp(I64, cond.result))
    val = if_op.then_region.front.append(ConstantIntegerOp(I64, 1))
    if_op.then_region.front.append(YieldOp(val.result))
    assert "else region" in verify_error(module)


def _if_with_yields(then_op, else_op):
    module, _, entry = make_func("test", FunctionType([], [I64]))
    cond = entry.append(ConstantBoolOp(True))
    if_op = entry.append(IfOp(I64, cond.result))
    for region, op in ((if_op.then_region, then_op), (if_op.else_region, else_op)):
        v = region.front.append(op)
        region.front.append(YieldOp(v.result))
    return module


def test_if_yield_mismatch_then():
    module = _if_with_yields(ConstantFloatOp(F64, 1.0), ConstantIntegerOp(I64, 0))
    assert "then branch yields" in verify_error(module)


def test_if_yield_mismatch_else():
    module = _if_with_yields(ConstantIntegerOp(I64, 1), ConstantFloatOp(F64, 0.0))
    assert "else branch yields" in verify_error(module)


def test_if_without_yield_terminator():
    module = _if_with_yields(ConstantIntegerOp(I64, 1), ConstantIntegerOp(I64, 0))
    if_op = next(op for op in module.walk() if isinstance(op, IfOp))
    if_op.then_region.front.operations.pop()
    assert "then region must end with polang.yield" in verify_error(module)


def test_return_type_mismatch():
    module, _, entry = make_func("test", FunctionType([], [I64]))
    val = entry.append(ConstantFloatOp(F64, 1.0))
    entry.append(ReturnOp(val.result))
    assert "returns" in verify_error(module)


def test_return_value_when_void():
    module, _, entry = make_func("test", FunctionType([], []))
    val = entry.append(ConstantIntegerOp(I64, 42))
    entry.append(ReturnOp(val.result))
    assert "returns a value but function has no return type" in verify_error(module)


def test_return_missing_value():
    module, _, entry = make_func("test", FunctionType([], [I64]))
    entry.append(ReturnOp())
    assert "must return a value of type" in verify_error(module)


def test_return_outside_func():
    module = ModuleOp()
    module.body.append(ReturnOp())
    assert "must be inside a polang.func" in verify_error(module)


def test_call_undefined_function():
    module, _, entry = make_func("test", FunctionType([], [I64]))
    call = entry.append(CallOp("nonexistent", [I64], []))
    entry.append(ReturnOp(call.result))
    assert "undefined function" in verify_error(module)


def _caller(module):
    _, _, entry = make_func("caller", FunctionType([], [I64]), module)
    return entry


def test_call_arg_count_mismatch():
    module = ModuleOp()
    module.body.append(FuncOp("target", FunctionType([I64], [I64])))
    entry = _caller(module)
    call = entry.append(CallOp("target", [I64], []))
    entry.append(ReturnOp(call.result))
    msg = verify_error(module)
    assert "expects" in msg
    assert "argument" in msg


def test_call_arg_type_mismatch():
    module = ModuleOp()
    module.body.append(FuncOp("target", FunctionType([I64], [I64])))
    entry = _caller(module)
    val = entry.append(ConstantFloatOp(F64, 1.0))
    call = entry.append(CallOp("target", [I64], [val.result]))
    entry.append(ReturnOp(call.result))
    assert "has type" in verify_error(module)


def test_call_result_type_mismatch():
    module = ModuleOp()
    module.body.append(FuncOp("target", FunctionType([], [I64])))
    _, _, entry = make_func("caller", FunctionType([], [F64]), module)
    call = entry.append(CallOp("target", [F64], []))
    entry.append(ReturnOp(call.result))
    assert "does not match function return type" in verify_error(module)


@pytest.mark.parametrize("op_cls", [AddOp, SubOp, MulOp, DivOp])
def test_arith_operand_mismatch(op_cls):
    module, _, entry = make_func("test", FunctionType([], [I64]))
    lhs = entry.append(ConstantIntegerOp(I64, 1))
    rhs = entry.append(ConstantFloatOp(F64, 2.0))
    entry.append(op_cls(I64, lhs.result, rhs.result))
    assert "operand types must be compatible" in verify_error(module)


def test_add_result_type_mismatch():
    module, _, entry = make_func("test", FunctionType([], [F64]))
    lhs = entry.append(ConstantIntegerOp(I64, 1))
    rhs = entry.append(ConstantIntegerOp(I64, 2))
    entry.append(AddOp(F64, lhs.result, rhs.result))
    assert "result type must be compatible" in verify_error(module)


def test_cmp_type_mismatch():
    module, _, entry = make_func("test", FunctionType([], [BOOL]))
    lhs = entry.append(ConstantIntegerOp(I64, 1))
    rhs = entry.append(ConstantFloatOp(F64, 2.0))
    entry.append(CmpOp(CmpPredicate.EQ, lhs.result, rhs.result))
    assert "comparison operand types must be compatible" in verify_error(module)


def test_cast_non_numeric():
    module, _, entry = make_func("test", FunctionType([], [I64]))
    b = entry.append(ConstantBoolOp(False))
    entry.append(CastOp(I64, b.result))
    assert "input type must be numeric" in verify_error(module)


def test_type_variables_pass_verification():
    tv = TypeVarType(0, TypeVarKind.INTEGER)
    module, func, entry = make_func("f", FunctionType([tv], [tv]))
    lhs = entry.arguments[0]
    rhs = entry.append(ConstantIntegerOp(I64, 2))
    add = entry.append(AddOp(tv, lhs, rhs.result))
    entry.append(PrintOp(add.result))
    entry.append(ReturnOp(add.result))
    assert verify(module) is module
    assert [op.name for op in module.walk()][-2:] == ["polang.func", "builtin.module"]


def test_walk_is_post_order_and_lookup():
    module, func, entry = make_func("main", FunctionType([], [I64]))
    c = entry.append(ConstantIntegerOp(I64, 1))
    entry.append(ReturnOp(c.result))
    ops = list(module.walk())
    assert ops == [c, entry.operations[1], func, module]
    assert module.lookup("main") is func
    assert module.lookup("other") is None


def test_alloca_attributes():
    alloca = AllocaOp("y", I64, is_mutable=True)
    assert alloca.var_name == "y"
    assert alloca.is_mutable
    assert alloca.element_type == I64


def test_format_contains_ops():
    module, _, entry = make_func("main", FunctionType([], [I64]))
    c = entry.append(ConstantIntegerOp(I64, 42))
    entry.append(ReturnOp(c.result))
    text = module.format()
    assert "polang.func @main" in text
    assert "polang.constant_integer 42" in text
    assert "polang.return" in text


def test_constant_integer_round_trip():
    op = ConstantIntegerOp(IntegerType(32), -7)
    parsed = parse_constant_integer(op.format())
    assert parsed.value == -7
    assert parsed.result.type == IntegerType(32)


def test_constant_float_round_trip():
    op = ConstantFloatOp(FloatType(32), 2.5)
    parsed = parse_constant_float(op.format())
    assert parsed.value == 2.5
    assert parsed.result.type == FloatType(32)


def test_constant_typevar_parse():
    parsed = parse_constant_integer("3 : " + str(TypeVarType(4)))
    assert parsed.result.type == TypeVarType(4)
    assert parsed.value == 3


def test_constant_parse_wrong_type():
    with pytest.raises(TypeParseError, match="expected polang.integer or typevar type"):
        parse_constant_integer("1 : " + str(F64))
    with pytest.raises(TypeParseError, match="expected polang.float or typevar type"):
        parse_constant_float("1.0 : " + str(I64))


def test_block_append_sets_parent():
    block = Block([I64])
    op = block.append(ConstantBoolOp(True))
    assert op.parent_block is block
    assert block.terminator is op
    assert block.arguments[0].type == I64