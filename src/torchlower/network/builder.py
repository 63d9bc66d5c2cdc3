"""Host network builder.

Converts an ONNX ``ModelProto`` into an immutable :class:`HostNetwork`:

- initializers and ``Constant`` nodes become literal nodes
- graph inputs that are not initializers become input nodes
- every other node becomes an operator node
- every graph output becomes an output node
"""

__docformat__ = "restructuredtext"
__all__ = ["build_host_network"]

import numpy as np
import torch
from onnx import AttributeProto, ModelProto, NodeProto, ValueInfoProto, numpy_helper

from torchlower.errors import MissingGraphRepresentation
from torchlower.network.dtypes import onnx_dtype_to_torch
from torchlower.network.types import (
    ABSENT_EDGE,
    Attribute,
    AttributeKind,
    Edge,
    GraphNode,
    HostNetwork,
    NodeKind,
)
from torchlower.target.types import TensorDesc

# Numpy element type -> sequence attribute kind for TENSOR attributes
_ARRAY_KINDS: dict[np.dtype, AttributeKind] = {
    np.dtype(np.float32): AttributeKind.FLOAT32S,
    np.dtype(np.float64): AttributeKind.FLOAT64S,
    np.dtype(np.int8): AttributeKind.INT8S,
    np.dtype(np.int16): AttributeKind.INT16S,
    np.dtype(np.int32): AttributeKind.INT32S,
    np.dtype(np.int64): AttributeKind.INT64S,
    np.dtype(np.uint8): AttributeKind.UINT8S,
    np.dtype(np.uint16): AttributeKind.UINT16S,
    np.dtype(np.uint32): AttributeKind.UINT32S,
    np.dtype(np.uint64): AttributeKind.UINT64S,
}


def _unique(base: str, taken: set[str]) -> str:
    name = base
    counter = 1
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    taken.add(name)
    return name


def _tensor_shape(value_info: ValueInfoProto) -> tuple[int, ...] | None:
    """Static shape of a value; symbolic or unknown dimensions become 1."""
    tensor_type = value_info.type.tensor_type
    if not tensor_type.HasField("shape"):
        return None
    return tuple(dim.dim_value if dim.dim_value > 0 else 1 for dim in tensor_type.shape.dim)


def _tensor_dtype(value_info: ValueInfoProto) -> torch.dtype:
    return onnx_dtype_to_torch(value_info.type.tensor_type.elem_type)


def _convert_attribute(attr: AttributeProto) -> Attribute:
    """Convert an ONNX attribute into a typed host attribute.

    :param attr: ONNX attribute
    :return: Host attribute; opaque payloads are tagged VOID_PTR
    """
    if attr.type == AttributeProto.UNDEFINED:
        return Attribute(attr.name, AttributeKind.VOID)
    if attr.type == AttributeProto.FLOAT:
        return Attribute(attr.name, AttributeKind.DOUBLE, float(attr.f))
    if attr.type == AttributeProto.INT:
        return Attribute(attr.name, AttributeKind.INT64, int(attr.i))
    if attr.type == AttributeProto.STRING:
        return Attribute(attr.name, AttributeKind.STRING, attr.s.decode("utf-8"))
    if attr.type == AttributeProto.FLOATS:
        return Attribute(attr.name, AttributeKind.FLOAT32S, tuple(attr.floats))
    if attr.type == AttributeProto.INTS:
        return Attribute(attr.name, AttributeKind.INT64S, tuple(attr.ints))
    if attr.type == AttributeProto.STRINGS:
        return Attribute(
            attr.name, AttributeKind.STRINGS, tuple(s.decode("utf-8") for s in attr.strings)
        )
    if attr.type == AttributeProto.TENSOR:
        array = numpy_helper.to_array(attr.t)
        kind = _ARRAY_KINDS.get(array.dtype)
        if kind is not None:
            return Attribute(attr.name, kind, tuple(array.reshape(-1).tolist()))
        return Attribute(attr.name, AttributeKind.VOID_PTR, attr.t)
    # GRAPH(S), TENSORS, SPARSE_TENSOR(S), TYPE_PROTO(S)
    return Attribute(attr.name, AttributeKind.VOID_PTR, attr)


def _operator_attributes(node_proto: NodeProto, num_inputs: int) -> tuple[Attribute, ...]:
    """Host attributes of an operator node.

    A ``Split`` without split sizes divides evenly into its declared outputs, so
    the output count is recorded as ``num_outputs`` for the operator builder.
    """
    attributes = tuple(_convert_attribute(attr) for attr in node_proto.attribute)
    if node_proto.op_type == "Split" and num_inputs < 2:
        names = {attr.name for attr in attributes}
        if not names & {"split", "num_outputs"}:
            count = Attribute("num_outputs", AttributeKind.INT64, len(node_proto.output))
            attributes += (count,)
    return attributes


def _literal_node(
    name: str, friendly_name: str, array: np.ndarray, dtype: torch.dtype
) -> GraphNode:
    return GraphNode(
        name=name,
        friendly_name=friendly_name,
        kind=NodeKind.LITERAL,
        op_type="Constant",
        dtype=dtype,
        shape=tuple(int(dim) for dim in array.shape),
        data=np.ascontiguousarray(array).tobytes(),
    )


def _constant_payload(node: NodeProto) -> tuple[np.ndarray, torch.dtype]:
    """Tensor held by an ONNX Constant node."""
    for attr in node.attribute:
        if attr.name == "value":
            return numpy_helper.to_array(attr.t), onnx_dtype_to_torch(attr.t.data_type)
        if attr.name == "value_float":
            return np.array(attr.f, dtype=np.float32), torch.float32
        if attr.name == "value_floats":
            return np.array(attr.floats, dtype=np.float32), torch.float32
        if attr.name == "value_int":
            return np.array(attr.i, dtype=np.int64), torch.int64
        if attr.name == "value_ints":
            return np.array(attr.ints, dtype=np.int64), torch.int64
    raise ValueError(f"Constant node '{node.name}' has no supported value attribute")


def _check_overrides(overrides: dict[str, torch.dtype], declared: set[str], what: str) -> None:
    unknown = sorted(set(overrides) - declared)
    if unknown:
        raise ValueError(f"Unknown network {what}(s) in dtype overrides: {unknown}")


def build_host_network(
    model: ModelProto,
    input_dtypes: dict[str, torch.dtype] | None = None,
    output_dtypes: dict[str, torch.dtype] | None = None,
) -> HostNetwork:
    """Build the host network of an ONNX model.

    Declared input names are the ONNX input names. Declared output names are the
    producer's alias (its output tensor name for single-output nodes) with
    ``.index`` appended when the producer has several outputs.

    :param model: ONNX model
    :param input_dtypes: Host precision overrides by input name
    :param output_dtypes: Host precision overrides by declared output name
    :return: Host network with nodes in topological order
    :raises MissingGraphRepresentation: If the model has no graph
    :raises ValueError: If the graph references unknown tensors
    """
    if not model.HasField("graph"):
        raise MissingGraphRepresentation()
    graph = model.graph
    input_dtypes = input_dtypes or {}
    output_dtypes = output_dtypes or {}

    taken: set[str] = set()
    producers: dict[str, Edge] = {}
    nodes: list[GraphNode] = []
    inputs: dict[str, TensorDesc] = {}

    initializer_names = set()
    for tensor_proto in graph.initializer:
        literal = _literal_node(
            _unique(tensor_proto.name, taken),
            tensor_proto.name,
            numpy_helper.to_array(tensor_proto),
            onnx_dtype_to_torch(tensor_proto.data_type),
        )
        nodes.append(literal)
        producers[tensor_proto.name] = Edge(literal.name)
        initializer_names.add(tensor_proto.name)

    graph_inputs = [vi for vi in graph.input if vi.name not in initializer_names]
    _check_overrides(input_dtypes, {vi.name for vi in graph_inputs}, "input")
    for value_info in graph_inputs:
        dtype = _tensor_dtype(value_info)
        shape = _tensor_shape(value_info)
        node = GraphNode(
            name=_unique(value_info.name, taken),
            friendly_name=value_info.name,
            kind=NodeKind.INPUT,
            op_type="Parameter",
            dtype=dtype,
            shape=shape,
        )
        nodes.append(node)
        producers[value_info.name] = Edge(node.name)
        inputs[value_info.name] = TensorDesc(input_dtypes.get(value_info.name, dtype), shape)

    # Name every node and record its outputs before wiring edges, so that
    # consumers placed before their producer still resolve to a producer.
    named: list[tuple[NodeProto, str]] = []
    for index, node_proto in enumerate(graph.node):
        name = _unique(node_proto.name or f"{node_proto.op_type}_{index}", taken)
        named.append((node_proto, name))
        for slot, output in enumerate(node_proto.output):
            if output:
                producers[output] = Edge(name, slot)

    for node_proto, name in named:
        if node_proto.op_type == "Constant":
            array, dtype = _constant_payload(node_proto)
            nodes.append(_literal_node(name, node_proto.output[0], array, dtype))
            continue

        # Omitted optional inputs keep their position; trailing ones are dropped
        input_names = list(node_proto.input)
        while input_names and not input_names[-1]:
            input_names.pop()
        edges = []
        for tensor_name in input_names:
            if not tensor_name:
                edges.append(ABSENT_EDGE)
                continue
            if tensor_name not in producers:
                raise ValueError(f"Node '{name}' consumes unknown tensor '{tensor_name}'")
            edges.append(producers[tensor_name])

        single = len(node_proto.output) == 1
        nodes.append(
            GraphNode(
                name=name,
                friendly_name=node_proto.output[0] if single else (node_proto.name or name),
                kind=NodeKind.OPERATOR,
                op_type=node_proto.op_type,
                inputs=tuple(edges),
                num_outputs=len(node_proto.output),
                attributes=_operator_attributes(node_proto, len(edges)),
            )
        )

    by_name = {node.name: node for node in nodes}
    outputs: dict[str, TensorDesc] = {}
    results: list[GraphNode] = []
    for value_info in graph.output:
        if value_info.name not in producers:
            raise ValueError(f"Graph output '{value_info.name}' has no producer")
        edge = producers[value_info.name]
        output_name = by_name[edge.producer].output_name(edge.index)
        if output_name in outputs:
            raise ValueError(
                f"Graph output '{value_info.name}' aliases already declared output '{output_name}'"
            )
        outputs[output_name] = TensorDesc(
            output_dtypes.get(output_name, _tensor_dtype(value_info)), _tensor_shape(value_info)
        )
        results.append(
            GraphNode(
                name=_unique(f"{value_info.name}/result", taken),
                friendly_name=output_name,
                kind=NodeKind.OUTPUT,
                op_type="Result",
                inputs=(edge,),
                num_outputs=0,
            )
        )
    _check_overrides(output_dtypes, set(outputs), "output")

    return HostNetwork(
        name=graph.name,
        nodes=tuple(nodes + results),
        inputs=inputs,
        outputs=outputs,
    )
