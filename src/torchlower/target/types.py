"""Target representation type definitions.

Tensor handles wrap ``torch.fx`` nodes. Shape and dtype are carried by the
meta-device tensor stored in ``node.meta["val"]``.
"""

from __future__ import annotations

__docformat__ = "restructuredtext"
__all__ = ["Program", "TensorDesc", "TensorHandle"]

from dataclasses import dataclass
from typing import TYPE_CHECKING

import torch
from torch import fx

if TYPE_CHECKING:
    from torchlower.target.graph import TargetGraph


@dataclass(frozen=True)
class TensorDesc:
    """Element type and shape of a tensor.

    :param dtype: PyTorch dtype
    :param shape: Static shape (None if unknown)
    """

    dtype: torch.dtype
    shape: tuple[int, ...] | None = None


@dataclass(frozen=True, eq=False)
class TensorHandle:
    """Opaque reference to a value of a :class:`TargetGraph`.

    Several handles may alias the same value, e.g. before and after a reshape.

    :param graph: Owning target graph
    :param node: FX node producing the value
    :param value: Concrete tensor when the value is known at build time
    """

    graph: TargetGraph
    node: fx.Node
    value: torch.Tensor | None = None

    @property
    def meta(self) -> torch.Tensor:
        return self.node.meta["val"]

    @property
    def dtype(self) -> torch.dtype:
        return self.meta.dtype

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.meta.shape)

    @property
    def desc(self) -> TensorDesc:
        return TensorDesc(self.dtype, self.shape)

    def __repr__(self) -> str:
        return f"TensorHandle({self.node.name}, {self.dtype}, {list(self.shape)})"


@dataclass(frozen=True)
class Program:
    """Immutable lowered program with ordered external inputs and outputs.

    :param module: Executable FX graph module
    :param input_names: Declared input names, in host order
    :param output_names: Declared output names, in host order
    :param input_descs: Input descriptors, aligned with ``input_names``
    :param output_descs: Output descriptors, aligned with ``output_names``
    """

    module: fx.GraphModule
    input_names: tuple[str, ...]
    output_names: tuple[str, ...]
    input_descs: tuple[TensorDesc, ...]
    output_descs: tuple[TensorDesc, ...]

    def __call__(self, *inputs: torch.Tensor) -> tuple[torch.Tensor, ...]:
        if len(inputs) != len(self.input_names):
            raise TypeError(
                f"Program expects {len(self.input_names)} input(s), got {len(inputs)}"
            )
        with torch.no_grad():
            return tuple(self.module(*inputs))

    def run(self, feeds: dict[str, torch.Tensor]) -> dict[str, torch.Tensor]:
        """Run the program with inputs given by name.

        :param feeds: Input name -> tensor
        :return: Output name -> tensor
        """
        missing = [name for name in self.input_names if name not in feeds]
        if missing:
            raise KeyError(f"Missing program inputs: {missing}")
        outputs = self(*(feeds[name] for name in self.input_names))
        return dict(zip(self.output_names, outputs, strict=True))
