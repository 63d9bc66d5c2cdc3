"""Physical layout policies for literal and input tensors.

A policy may ask for a literal or input to be reordered before operators see it.
The program builder then registers the reordered tensor and redirects the original
producer slot to it.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "LAYOUT_POLICIES",
    "ConsumerKindLayout",
    "LayoutPolicy",
    "NativeLayout",
    "get_layout_policy",
]

import math
from collections.abc import Sequence

from torchlower.network.types import GraphNode


def _same_size(shape: Sequence[int], reordered: Sequence[int] | None) -> tuple[int, ...] | None:
    if reordered is None or math.prod(shape) != math.prod(reordered):
        return None
    return tuple(reordered)


class LayoutPolicy:
    """Base layout policy: operators consume tensors in their declared layout."""

    name = "base"

    def literal_shape(
        self, node: GraphNode, consumers: Sequence[GraphNode]
    ) -> tuple[int, ...] | None:
        """Reordered shape for a literal, or None to keep it as declared.

        :param node: Literal node
        :param consumers: Nodes consuming the literal, in graph order
        """
        return None

    def input_shape(self, node: GraphNode, shape: Sequence[int]) -> tuple[int, ...] | None:
        """Reordered shape for a network input, or None to keep it as declared.

        :param node: Input node
        :param shape: Host-declared input shape
        """
        return None

    def reorder_literal(
        self, node: GraphNode, consumers: Sequence[GraphNode]
    ) -> tuple[int, ...] | None:
        shape = node.shape or ()
        return _same_size(shape, self.literal_shape(node, consumers))

    def reorder_input(self, node: GraphNode, shape: Sequence[int]) -> tuple[int, ...] | None:
        return _same_size(shape, self.input_shape(node, shape))


class NativeLayout(LayoutPolicy):
    """Never reorder. ONNX and PyTorch both use NCHW."""

    name = "native"


class ConsumerKindLayout(LayoutPolicy):
    """Channels-last reordering chosen from the kind of the first consumer.

    Only rank-4 tensors are reordered, plus rank-2 literals feeding a matrix
    multiply. The reorder is a reshape, not a transpose, and candidates whose
    element count differs from the source are skipped.
    """

    name = "consumer_kind"

    CONVOLUTION_KINDS = frozenset({"Conv", "Convolution"})
    FLATTENING_KINDS = frozenset({"ReduceMean", "Reshape"})
    MATMUL_KINDS = frozenset({"MatMul"})

    # Classifier bias channel count, kept as (N, 1, 1, C)
    CLASSIFIER_CHANNELS = 1000
    # Trailing dimension of flattened pooling outputs
    FLATTENED_CHANNELS = 2048

    def literal_shape(
        self, node: GraphNode, consumers: Sequence[GraphNode]
    ) -> tuple[int, ...] | None:
        dims = tuple(node.shape or ())
        kind = consumers[0].op_type if consumers else None

        if kind in self.MATMUL_KINDS and len(dims) in (2, 4):
            return (dims[1], dims[0], 1, 1)
        if len(dims) != 4:
            return None
        if kind in self.CONVOLUTION_KINDS:
            return (dims[2], dims[3], dims[1], dims[0])
        if kind in self.FLATTENING_KINDS:
            return (1, 1, 1, self.FLATTENED_CHANNELS)
        if dims[1] == self.CLASSIFIER_CHANNELS:
            return (dims[0], 1, 1, dims[1])
        return (dims[0], dims[2], dims[3], dims[1])

    def input_shape(self, node: GraphNode, shape: Sequence[int]) -> tuple[int, ...] | None:
        if len(shape) != 4:
            return None
        return (shape[0], shape[2], shape[3], shape[1])


LAYOUT_POLICIES: dict[str, type[LayoutPolicy]] = {
    NativeLayout.name: NativeLayout,
    ConsumerKindLayout.name: ConsumerKindLayout,
}


def get_layout_policy(policy: str | LayoutPolicy | None) -> LayoutPolicy:
    """Resolve a policy instance from a name, an instance or None (native).

    :raises ValueError: For unknown policy names
    """
    if policy is None:
        return NativeLayout()
    if isinstance(policy, LayoutPolicy):
        return policy
    if policy not in LAYOUT_POLICIES:
        raise ValueError(
            f"Unknown layout policy '{policy}'; expected one of {sorted(LAYOUT_POLICIES)}"
        )
    return LAYOUT_POLICIES[policy]()
