"""Builders for arithmetic and elementwise ONNX operators."""

from __future__ import annotations

__docformat__ = "restructuredtext"
__all__ = ["onnx_div", "register_operator_builders"]

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

import torch

from torchlower.ops._utils import require_operands
from torchlower.target import emit

if TYPE_CHECKING:
    from torchlower.lower.attrs import AttributeDict
    from torchlower.ops.registry import OperatorBuilder, OperatorRegistry
    from torchlower.target import TensorHandle


def onnx_div(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """ONNX Div: true division for floats, truncation for integers."""
    if a.is_floating_point() or b.is_floating_point():
        return torch.div(a, b)
    return torch.div(a, b, rounding_mode="trunc")


def _binary(op_name: str, fn: Callable[..., torch.Tensor]) -> OperatorBuilder:
    def builder(operands: Sequence[TensorHandle], attrs: AttributeDict):
        require_operands(operands, 2, op_name)
        return (emit(fn, operands[0], operands[1]),)

    return builder


def _unary(op_name: str, fn: Callable[..., torch.Tensor]) -> OperatorBuilder:
    def builder(operands: Sequence[TensorHandle], attrs: AttributeDict):
        require_operands(operands, 1, op_name)
        return (emit(fn, operands[0]),)

    return builder


_BINARY_OPERATORS: dict[str, Callable[..., torch.Tensor]] = {
    "Add": torch.add,
    "Sub": torch.sub,
    "Mul": torch.mul,
    "Div": onnx_div,
    "Pow": torch.pow,
    "MatMul": torch.matmul,
    "Equal": torch.eq,
    "Greater": torch.gt,
    "Less": torch.lt,
    "And": torch.logical_and,
    "Or": torch.logical_or,
}

_UNARY_OPERATORS: dict[str, Callable[..., torch.Tensor]] = {
    "Neg": torch.neg,
    "Abs": torch.abs,
    "Exp": torch.exp,
    "Log": torch.log,
    "Sqrt": torch.sqrt,
    "Floor": torch.floor,
    "Ceil": torch.ceil,
    "Reciprocal": torch.reciprocal,
    "Erf": torch.erf,
    "Sign": torch.sign,
    "Not": torch.logical_not,
    "Relu": torch.relu,
    "Sigmoid": torch.sigmoid,
    "Tanh": torch.tanh,
    "Sin": torch.sin,
    "Cos": torch.cos,
}


def register_operator_builders(registry: OperatorRegistry) -> None:
    """Register arithmetic and elementwise builders.

    :param registry: Registry to populate
    """
    for op_type, fn in _BINARY_OPERATORS.items():
        registry.register(op_type, _binary(op_type, fn))
    for op_type, fn in _UNARY_OPERATORS.items():
        registry.register(op_type, _unary(op_type, fn))
