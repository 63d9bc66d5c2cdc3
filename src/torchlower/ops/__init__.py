"""Operator registry and built-in ONNX operator builders."""

__docformat__ = "restructuredtext"
__all__ = ["OperatorBuilder", "OperatorRegistry", "default_registry"]

from torchlower.ops.registry import OperatorBuilder, OperatorRegistry, default_registry
