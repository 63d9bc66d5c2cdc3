"""Operator registry.

Maps operator kind names (e.g. "Conv") to builder functions. A registry is an
explicit object handed to the program builder.
"""

from __future__ import annotations

__docformat__ = "restructuredtext"
__all__ = ["OperatorBuilder", "OperatorRegistry", "default_registry"]

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from torchlower.lower.attrs import AttributeDict
    from torchlower.target import TensorHandle

# Builder type: takes ordered operands (None for an omitted optional input) and the
# attribute dictionary, returns outputs
OperatorBuilder = Callable[
    [Sequence["TensorHandle | None"], "AttributeDict"], tuple["TensorHandle", ...]
]


class OperatorRegistry:
    """Operator kind name -> builder function.

    :param builders: Initial entries
    """

    def __init__(self, builders: dict[str, OperatorBuilder] | None = None):
        self._builders: dict[str, OperatorBuilder] = dict(builders or {})

    def __contains__(self, kind: str) -> bool:
        return kind in self._builders

    def __len__(self) -> int:
        return len(self._builders)

    def register(self, kind: str, builder: OperatorBuilder | None = None):
        """Register ``builder`` for ``kind``, replacing any previous entry.

        Without ``builder`` this returns a decorator.

        :param kind: Operator kind name
        :param builder: Builder function
        """
        if builder is None:

            def decorator(fn: OperatorBuilder) -> OperatorBuilder:
                self._builders[kind] = fn
                return fn

            return decorator
        self._builders[kind] = builder
        return builder

    def resolve(self, kind: str) -> OperatorBuilder | None:
        """Get the builder for ``kind``, or None if not registered."""
        return self._builders.get(kind)

    def kinds(self) -> list[str]:
        return sorted(self._builders)

    def copy(self) -> OperatorRegistry:
        return OperatorRegistry(self._builders)


def default_registry() -> OperatorRegistry:
    """Create a registry holding the built-in ONNX operator builders."""
    from torchlower.ops._layers import register_layer_builders
    from torchlower.ops._operations import register_operation_builders
    from torchlower.ops._operators import register_operator_builders

    registry = OperatorRegistry()
    register_operator_builders(registry)
    register_layer_builders(registry)
    register_operation_builders(registry)
    return registry
