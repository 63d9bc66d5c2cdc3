"""Node translators.

One translator per node kind. Translators read producer tensors from the shared
tensor registry and add new entries and/or I/O bindings.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "TRANSLATORS",
    "LoweringContext",
    "translate_input",
    "translate_literal",
    "translate_operator",
    "translate_output",
]

import warnings
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from torchlower.errors import (
    BuildError,
    BuilderContractViolation,
    DependencyNotFound,
    OutputArityMismatch,
    ShapeMismatch,
    UnboundIO,
    UnsupportedOperator,
)
from torchlower.lower.attrs import extract_attributes
from torchlower.lower.layout import LayoutPolicy
from torchlower.lower.registry import IOBindings, TensorRegistry
from torchlower.network.types import GraphNode, HostNetwork, NodeKind
from torchlower.ops.registry import OperatorRegistry
from torchlower.target import TargetGraph, TensorHandle


@dataclass
class LoweringContext:
    """State shared by the translators during one build.

    :param network: Host network being lowered
    :param target: Target graph receiving the program
    :param operators: Operator registry
    :param layout: Layout policy for literals and inputs
    :param tensors: Tensor registry
    :param io: I/O binding table
    """

    network: HostNetwork
    target: TargetGraph
    operators: OperatorRegistry
    layout: LayoutPolicy
    tensors: TensorRegistry = field(default_factory=TensorRegistry)
    io: IOBindings = field(default_factory=IOBindings)


def _redirect(
    ctx: LoweringContext, node: GraphNode, handle: TensorHandle, shape: Sequence[int]
) -> None:
    """Register a reordered view of ``handle`` and route consumers of ``node`` to it."""
    reordered = ctx.target.reshape(handle, shape)
    ctx.tensors.register((f"{node.name}_reordered", 0), reordered)
    ctx.tensors.redirect((node.name, 0), reordered)


def translate_literal(ctx: LoweringContext, node: GraphNode) -> None:
    """Embed a literal node's buffer and register it as output 0.

    :raises ShapeMismatch: If the buffer does not match the declared shape and type
    """
    if node.num_outputs != 1:
        raise OutputArityMismatch(node.name, 1, node.num_outputs)
    if node.dtype is None or node.shape is None or node.data is None:
        raise ShapeMismatch(f"Literal '{node.name}' has no typed buffer", node.name)

    tensor = ctx.target.literal(node.data, node.dtype, node.shape, node.friendly_name)
    ctx.tensors.register((node.name, 0), tensor)

    reordered = ctx.layout.reorder_literal(node, ctx.network.users(node.name))
    if reordered is not None:
        _redirect(ctx, node, tensor, reordered)


def translate_input(ctx: LoweringContext, node: GraphNode) -> None:
    """Create the placeholder of a network input.

    The placeholder has the host-declared type and is what the program exposes.
    Operators see it converted to the graph-declared type when the two differ.
    """
    name = node.friendly_name
    desc = ctx.network.inputs.get(name)
    if desc is None:
        raise UnboundIO(name, "input")
    shape = desc.shape if desc.shape is not None else node.shape
    if shape is None:
        raise ShapeMismatch(f"Input '{name}' has no static shape", name)
    if node.shape is not None and tuple(node.shape) != tuple(shape):
        warnings.warn(
            f"Input '{name}' is declared as {list(node.shape)} by the graph "
            f"but as {list(shape)} by the network; using the latter",
            UserWarning,
            stacklevel=2,
        )

    placeholder = ctx.target.placeholder(name, desc.dtype, shape)
    tensor = placeholder
    if node.dtype is not None and node.dtype != desc.dtype:
        tensor = ctx.target.convert(placeholder, node.dtype)

    ctx.tensors.register((node.name, 0), tensor)
    ctx.io.bind_input(name, placeholder)

    reordered = ctx.layout.reorder_input(node, shape)
    if reordered is not None:
        _redirect(ctx, node, tensor, reordered)


def _check_builder_outputs(
    ctx: LoweringContext, node: GraphNode, results: Any
) -> tuple[TensorHandle, ...]:
    if isinstance(results, TensorHandle):
        results = (results,)
    if not isinstance(results, (tuple, list)):
        raise BuilderContractViolation(
            node.name, f"returned {type(results).__name__}, expected a tuple of tensors"
        )
    for index, item in enumerate(results):
        if not isinstance(item, TensorHandle):
            raise BuilderContractViolation(
                node.name, f"returned {type(item).__name__} as output {index}"
            )
        if item.graph is not ctx.target:
            raise BuilderContractViolation(
                node.name, f"returned output {index} from another target graph"
            )
    if len(results) != node.num_outputs:
        raise OutputArityMismatch(node.name, node.num_outputs, len(results))
    return tuple(results)


def translate_operator(ctx: LoweringContext, node: GraphNode) -> None:
    """Invoke the registered builder of an operator node and register its outputs.

    Omitted optional inputs reach the builder as None in their own position.
    Nothing is registered unless every output passes validation.
    """
    builder = ctx.operators.resolve(node.op_type)
    if builder is None:
        raise UnsupportedOperator(node.op_type, node.name)

    operands = [
        None if edge.absent else ctx.tensors.resolve(edge.key, node.name) for edge in node.inputs
    ]
    attrs = extract_attributes(node)
    with ctx.target.named_scope(f"{node.op_type}[{node.name}]"):
        results = builder(operands, attrs)

    outputs = _check_builder_outputs(ctx, node, results)
    for index, handle in enumerate(outputs):
        ctx.tensors.register((node.name, index), handle)


def translate_output(ctx: LoweringContext, node: GraphNode) -> None:
    """Bind the producer feeding a result node to its external output name.

    The name is the producer's alias, with the slot index appended when the
    producer has several outputs. The unredirected producer tensor is bound,
    converted to the host-declared type if needed.
    """
    if len(node.inputs) != 1:
        raise BuildError(
            f"Output node '{node.name}' must have exactly one input, got {len(node.inputs)}"
        )
    edge = node.inputs[0]
    tensor = ctx.tensors.resolve(edge.key, node.name, follow_redirect=False)
    producer = ctx.network.node(edge.producer)
    if producer is None:
        raise DependencyNotFound(edge.key, node.name)

    name = producer.output_name(edge.index)
    desc = ctx.network.outputs.get(name)
    if desc is None:
        raise UnboundIO(name, "output")
    if tensor.dtype != desc.dtype:
        tensor = ctx.target.convert(tensor, desc.dtype)
    ctx.io.bind_output(name, tensor)


TRANSLATORS: dict[NodeKind, Callable[[LoweringContext, GraphNode], None]] = {
    NodeKind.LITERAL: translate_literal,
    NodeKind.INPUT: translate_input,
    NodeKind.OPERATOR: translate_operator,
    NodeKind.OUTPUT: translate_output,
}
