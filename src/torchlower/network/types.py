"""Host network type definitions.

The host network is the immutable, topologically ordered computation graph that
gets lowered. Nodes are never mutated after construction.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "ABSENT_EDGE",
    "Attribute",
    "AttributeKind",
    "Edge",
    "GraphNode",
    "HostNetwork",
    "NodeKind",
]

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any

import torch

from torchlower.target.types import TensorDesc


class NodeKind(Enum):
    """Kind tag of a graph node.

    :cvar LITERAL: Constant tensor with an embedded byte buffer
    :cvar INPUT: Network parameter fed at run time
    :cvar OPERATOR: Tensor operation resolved through the operator registry
    :cvar OUTPUT: Network result
    """

    LITERAL = "literal"
    INPUT = "input"
    OPERATOR = "operator"
    OUTPUT = "output"


class AttributeKind(Enum):
    """Underlying kind of an attribute value."""

    VOID = "void"
    VOID_PTR = "void*"
    BOOL = "bool"
    INT64 = "int64"
    DOUBLE = "double"
    STRING = "string"
    STRINGS = "string[]"
    FLOAT32S = "float32[]"
    FLOAT64S = "float64[]"
    INT8S = "int8[]"
    INT16S = "int16[]"
    INT32S = "int32[]"
    INT64S = "int64[]"
    UINT8S = "uint8[]"
    UINT16S = "uint16[]"
    UINT32S = "uint32[]"
    UINT64S = "uint64[]"

    @property
    def is_sequence(self) -> bool:
        return self.value.endswith("[]")


@dataclass(frozen=True)
class Edge:
    """Reference to one output slot of a producer node.

    An edge with an empty producer (:data:`ABSENT_EDGE`) keeps the position of an
    omitted optional input.

    :param producer: Identity of the producing node
    :param index: Output slot index on the producer
    """

    producer: str
    index: int = 0

    @property
    def key(self) -> tuple[str, int]:
        return (self.producer, self.index)

    @property
    def absent(self) -> bool:
        return not self.producer


ABSENT_EDGE = Edge("")


@dataclass(frozen=True)
class Attribute:
    """Typed attribute of a graph node.

    :param name: Attribute name
    :param kind: Underlying value kind
    :param value: Raw value (scalar, string or sequence)
    """

    name: str
    kind: AttributeKind
    value: Any = None


@dataclass(frozen=True)
class GraphNode:
    """One node of the host graph.

    Literal nodes carry ``dtype``, ``shape`` and ``data``; input nodes carry the
    graph-declared ``dtype`` and ``shape``.

    :param name: Unique node identity
    :param friendly_name: Human-readable alias (used for external I/O names)
    :param kind: Node kind tag
    :param op_type: Operator kind name (e.g. "Conv"); informative for non-operators
    :param inputs: Ordered input edges
    :param num_outputs: Output arity
    :param attributes: Kind-specific attribute set
    :param dtype: Element type (literal and input nodes)
    :param shape: Shape (literal and input nodes)
    :param data: Literal byte buffer
    """

    name: str
    friendly_name: str
    kind: NodeKind
    op_type: str
    inputs: tuple[Edge, ...] = ()
    num_outputs: int = 1
    attributes: tuple[Attribute, ...] = ()
    dtype: torch.dtype | None = None
    shape: tuple[int, ...] | None = None
    data: bytes | None = None

    def output_name(self, index: int) -> str:
        """External name of output ``index``.

        Nodes with several outputs get the slot index appended, e.g. ``split.1``.
        """
        if self.num_outputs > 1:
            return f"{self.friendly_name}.{index}"
        return self.friendly_name


@dataclass(frozen=True)
class HostNetwork:
    """Immutable host network handed to the program builder.

    :param name: Network name
    :param nodes: Topologically ordered nodes, or None if the network has no graph
    :param inputs: Declared inputs in declaration order (name -> descriptor)
    :param outputs: Declared outputs in declaration order (name -> descriptor)
    """

    name: str
    nodes: tuple[GraphNode, ...] | None
    inputs: dict[str, TensorDesc] = field(default_factory=dict)
    outputs: dict[str, TensorDesc] = field(default_factory=dict)

    @cached_property
    def _by_name(self) -> dict[str, GraphNode]:
        return {node.name: node for node in self.nodes or ()}

    @cached_property
    def _consumers(self) -> dict[str, list[GraphNode]]:
        consumers: dict[str, list[GraphNode]] = {}
        for node in self.nodes or ():
            for producer in dict.fromkeys(e.producer for e in node.inputs if not e.absent):
                consumers.setdefault(producer, []).append(node)
        return consumers

    def node(self, name: str) -> GraphNode | None:
        return self._by_name.get(name)

    def users(self, name: str) -> list[GraphNode]:
        """Nodes consuming any output of node ``name``, in graph order."""
        return list(self._consumers.get(name, ()))
