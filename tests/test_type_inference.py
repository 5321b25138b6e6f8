from polang_ir.ir import ConstantIntegerOp, FuncOp, ModuleOp, ReturnOp
from polang_ir.type_inference import infer_return_types
from polang_ir.types import FloatType, FunctionType, IntegerType, Signedness

I64 = IntegerType(64, Signedness.SIGNED)
F64 = FloatType(64)


def _module_with(func):
    module = ModuleOp()
    module.body.append(func)
    return module


def test_infers_return_type_from_returned_constant():
    func = FuncOp("f", FunctionType((), ()))
    block = func.add_entry_block()
    const = block.append(ConstantIntegerOp(I64, 42))
    block.append(ReturnOp(const.result))
    module = _module_with(func)

    result = infer_return_types(module)

    assert result is module
    assert func.result_types == (I64,)


def test_infers_from_block_argument_and_keeps_inputs():
    func = FuncOp("g", FunctionType((F64, I64), ()))
    block = func.add_entry_block()
    block.append(ReturnOp(block.arguments[0]))
    infer_return_types(_module_with(func))
    assert func.function_type == FunctionType((F64, I64), (F64,))


def test_declared_result_type_is_left_alone():
    func = FuncOp("h", FunctionType((), (F64,)))
    block = func.add_entry_block()
    const = block.append(ConstantIntegerOp(I64, 1))
    block.append(ReturnOp(const.result))
    infer_return_types(_module_with(func))
    assert func.result_types == (F64,)


def test_function_returning_nothing_stays_without_result():
    func = FuncOp("v", FunctionType((), ()))
    block = func.add_entry_block()
    block.append(ReturnOp())
    infer_return_types(_module_with(func))
    assert func.result_types == ()


def test_last_value_return_wins():
    func = FuncOp("m", FunctionType((F64,), ()))
    block = func.add_entry_block()
    const = block.append(ConstantIntegerOp(I64, 7))
    block.append(ReturnOp(const.result))
    block.append(ReturnOp(block.arguments[0]))
    infer_return_types(_module_with(func))
    assert func.result_types == (F64,)


def test_every_function_in_module_is_processed():
    module = ModuleOp()
    funcs = []
    for name, arg_type in (("a", I64), ("b", F64)):
        func = FuncOp(name, FunctionType((arg_type,), ()))
        block = func.add_entry_block()
        block.append(ReturnOp(block.arguments[0]))
        module.body.append(func)
        funcs.append(func)
    infer_return_types(module)
    assert [f.result_types for f in funcs] == [(I64,), (F64,)]
    assert module.lookup("a").result_types == (I64,)