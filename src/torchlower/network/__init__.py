"""Host network: the immutable source graph and its ONNX front end."""

__docformat__ = "restructuredtext"
__all__ = [
    "ABSENT_EDGE",
    "Attribute",
    "AttributeKind",
    "Edge",
    "GraphNode",
    "HostNetwork",
    "NodeKind",
    "build_host_network",
    "load_and_preprocess_onnx_model",
]

from torchlower.network.builder import build_host_network
from torchlower.network.normalize import load_and_preprocess_onnx_model
from torchlower.network.types import (
    ABSENT_EDGE,
    Attribute,
    AttributeKind,
    Edge,
    GraphNode,
    HostNetwork,
    NodeKind,
)
