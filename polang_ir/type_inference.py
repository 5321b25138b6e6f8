"""Return-type inference for functions declared without a result type."""

from __future__ import annotations

from .ir import FuncOp, Operation, ReturnOp
from .types import FunctionType


def _returned_type(func: FuncOp):
    """Type of the value returned by the last value-carrying return in `func`."""
    inferred = None
    for op in func.walk():
        if isinstance(op, ReturnOp) and op.value is not None:
            inferred = op.value.type
    return inferred


def infer_return_types(module: Operation) -> Operation:
    """Give every function without a result type the type of the value it returns.

    Functions that already declare a result type, or that return no value,
    are left unchanged. The module is updated in place and returned.
    """
    for op in module.walk():
        if not isinstance(op, FuncOp) or op.result_types:
            continue
        inferred = _returned_type(op)
        if inferred is not None:
            op.function_type = FunctionType(op.argument_types, (inferred,))
    return module