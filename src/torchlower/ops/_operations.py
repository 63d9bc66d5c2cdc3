"""Builders for ONNX shape, indexing and reduction operations."""

from __future__ import annotations

__docformat__ = "restructuredtext"
__all__ = ["onnx_gather", "onnx_unsqueeze", "register_operation_builders"]

import math
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

import torch

from torchlower.network.dtypes import onnx_dtype_to_torch
from torchlower.ops._utils import (
    attr,
    normalize_axis,
    optional_operand,
    require_operands,
    static_ints,
)
from torchlower.target import emit

if TYPE_CHECKING:
    from torchlower.lower.attrs import AttributeDict
    from torchlower.ops.registry import OperatorBuilder, OperatorRegistry
    from torchlower.target import TensorHandle


def onnx_gather(data: torch.Tensor, indices: torch.Tensor, axis: int = 0) -> torch.Tensor:
    """ONNX Gather with support for negative indices."""
    indices = torch.where(indices < 0, indices + data.shape[axis], indices)
    flat = torch.index_select(data, axis, indices.reshape(-1).long())
    return flat.reshape(data.shape[:axis] + indices.shape + data.shape[axis + 1 :])


def onnx_unsqueeze(data: torch.Tensor, axes: tuple[int, ...]) -> torch.Tensor:
    """Insert size-1 dimensions at ``axes`` (already normalized, ascending)."""
    for axis in axes:
        data = data.unsqueeze(axis)
    return data


def _axes(
    operands: Sequence[TensorHandle], attrs: AttributeDict, op_name: str
) -> list[int] | None:
    """Axes from the second input (newer opsets) or the ``axes`` attribute."""
    axes_input = optional_operand(operands, 1)
    if axes_input is not None:
        return static_ints(axes_input, f"{op_name} axes")
    axes = attr(attrs, "axes")
    return None if axes is None else list(axes)


def _identity(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Identity")
    return (operands[0],)


def _cast(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Cast")
    to = attr(attrs, "to")
    if to is None:
        raise ValueError("Cast 'to' attribute is required")
    x = operands[0]
    return (x.graph.convert(x, onnx_dtype_to_torch(to)),)


def _reshape(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 2, "Reshape")
    x = operands[0]
    shape = static_ints(operands[1], "Reshape shape")
    if not attr(attrs, "allowzero", 0):
        shape = [x.shape[index] if dim == 0 else dim for index, dim in enumerate(shape)]
    return (emit(torch.reshape, x, tuple(shape)),)


def _flatten(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Flatten")
    x = operands[0]
    rank = len(x.shape)
    axis = attr(attrs, "axis", 1)
    axis = axis + rank if axis < 0 else axis
    outer = math.prod(x.shape[:axis])
    inner = math.prod(x.shape[axis:])
    return (emit(torch.reshape, x, (outer, inner)),)


def _transpose(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Transpose")
    x = operands[0]
    perm = attr(attrs, "perm", tuple(reversed(range(len(x.shape)))))
    return (emit(torch.permute, x, tuple(perm)),)


def _concat(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Concat")
    axis = attr(attrs, "axis")
    if axis is None:
        raise ValueError("Concat axis is required")
    return (emit(torch.cat, list(operands), dim=axis),)


def _split(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Split")
    x = operands[0]
    axis = normalize_axis(attr(attrs, "axis", 0), len(x.shape))
    split_input = optional_operand(operands, 1)
    if split_input is not None:
        sizes: int | list[int] = static_ints(split_input, "Split sizes")
    elif attr(attrs, "split") is not None:
        sizes = list(attr(attrs, "split"))
    elif attr(attrs, "num_outputs") is not None:
        sizes = math.ceil(x.shape[axis] / attr(attrs, "num_outputs"))
    else:
        raise ValueError("Split needs split sizes or num_outputs")
    return emit(torch.split, x, sizes, dim=axis)


def _squeeze(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Squeeze")
    x = operands[0]
    axes = _axes(operands, attrs, "Squeeze")
    if axes is None:
        return (emit(torch.squeeze, x),)
    rank = len(x.shape)
    return (emit(torch.squeeze, x, tuple(normalize_axis(axis, rank) for axis in axes)),)


def _unsqueeze(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Unsqueeze")
    x = operands[0]
    axes = _axes(operands, attrs, "Unsqueeze")
    if axes is None:
        raise ValueError("Unsqueeze axes are required")
    rank = len(x.shape) + len(axes)
    normalized = tuple(sorted(normalize_axis(axis, rank) for axis in axes))
    return (emit(onnx_unsqueeze, x, normalized),)


def _reduce(op_name: str, fn: Callable[..., torch.Tensor]) -> OperatorBuilder:
    def builder(operands: Sequence[TensorHandle], attrs: AttributeDict):
        require_operands(operands, 1, op_name)
        x = operands[0]
        rank = len(x.shape)
        axes = _axes(operands, attrs, op_name)
        if not axes:
            if attr(attrs, "noop_with_empty_axes", 0):
                return (x,)
            axes = list(range(rank))
        dims = tuple(sorted(normalize_axis(axis, rank) for axis in axes))
        return (emit(fn, x, dim=dims, keepdim=bool(attr(attrs, "keepdims", 1))),)

    return builder


def _gather(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 2, "Gather")
    x = operands[0]
    axis = normalize_axis(attr(attrs, "axis", 0), len(x.shape))
    return (emit(onnx_gather, x, operands[1], axis=axis),)


def _shape(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Shape")
    x = operands[0]
    rank = len(x.shape)
    start = attr(attrs, "start", 0)
    end = attr(attrs, "end", rank)
    dims = torch.tensor(x.shape[slice(start, end)], dtype=torch.int64)
    return (x.graph.constant(dims, f"{x.node.name}_shape"),)


def register_operation_builders(registry: OperatorRegistry) -> None:
    """Register shape, indexing and reduction builders.

    :param registry: Registry to populate
    """
    registry.register("Identity", _identity)
    registry.register("Cast", _cast)
    registry.register("Reshape", _reshape)
    registry.register("Flatten", _flatten)
    registry.register("Transpose", _transpose)
    registry.register("Concat", _concat)
    registry.register("Split", _split)
    registry.register("Squeeze", _squeeze)
    registry.register("Unsqueeze", _unsqueeze)
    registry.register("ReduceMean", _reduce("ReduceMean", torch.mean))
    registry.register("ReduceSum", _reduce("ReduceSum", torch.sum))
    registry.register("ReduceMax", _reduce("ReduceMax", torch.amax))
    registry.register("Gather", _gather)
    registry.register("Shape", _shape)
