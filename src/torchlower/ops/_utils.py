"""Helpers shared by operator builders."""

from __future__ import annotations

__docformat__ = "restructuredtext"
__all__ = [
    "attr",
    "normalize_axis",
    "optional_operand",
    "require_operands",
    "static_ints",
    "torch_pad",
]

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from torchlower.lower.attrs import AttributeDict
    from torchlower.target import TensorHandle


def attr(attrs: AttributeDict, name: str, default: Any = None) -> Any:
    """Plain value of attribute ``name``, or ``default`` if absent."""
    entry = attrs.get(name)
    return default if entry is None else entry.value


def require_operands(operands: Sequence[TensorHandle], min_count: int, op_name: str) -> None:
    """Validate that a builder received at least ``min_count`` operands.

    :raises ValueError: If fewer operands were given
    """
    if len(operands) < min_count:
        raise ValueError(
            f"{op_name} requires at least {min_count} input(s), got {len(operands)}"
        )


def optional_operand(operands: Sequence[TensorHandle | None], index: int) -> TensorHandle | None:
    """Operand at ``index``, or None if it was omitted."""
    return operands[index] if index < len(operands) else None


def static_ints(handle: TensorHandle, what: str) -> list[int]:
    """Integer contents of a build-time constant operand.

    :raises ValueError: If the operand is only known at run time
    """
    if handle.value is None:
        raise ValueError(f"{what} must be a constant tensor; dynamic values are not supported")
    return [int(item) for item in handle.value.reshape(-1).tolist()]


def normalize_axis(axis: int, rank: int) -> int:
    if not -rank <= axis < rank:
        raise ValueError(f"Axis {axis} is out of range for rank {rank}")
    return axis % rank


def torch_pad(begin: Sequence[int], end: Sequence[int]) -> tuple[int, ...]:
    """Convert ONNX begin/end pads to ``F.pad`` order (last dimension first)."""
    return tuple(
        value for index in reversed(range(len(begin))) for value in (begin[index], end[index])
    )
