"""Error taxonomy for program lowering.

Every error is raised where it is detected and aborts the whole build.
Each carries the identity of the offending node, attribute, edge or I/O name.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "BuildError",
    "BuilderContractViolation",
    "DependencyNotFound",
    "MissingGraphRepresentation",
    "OutputArityMismatch",
    "RegistryConflict",
    "ShapeMismatch",
    "UnboundIO",
    "UnsupportedAttributeKind",
    "UnsupportedOperator",
]

from typing import Any


class BuildError(Exception):
    """Base class of all lowering failures."""


class MissingGraphRepresentation(BuildError):
    """The host network carries no graph to lower."""

    def __init__(self, network_name: str | None = None):
        self.network_name = network_name
        where = f" '{network_name}'" if network_name else ""
        super().__init__(f"Host network{where} has no graph representation")


class UnsupportedOperator(BuildError, NotImplementedError):
    """No builder is registered for an operator kind."""

    def __init__(self, op_type: str, node_name: str):
        self.op_type = op_type
        self.node_name = node_name
        super().__init__(f"Unsupported operation: {op_type} (node '{node_name}')")


class UnsupportedAttributeKind(BuildError):
    """An attribute holds a value kind that cannot be represented."""

    def __init__(self, attr_name: str, kind: Any, node_name: str | None = None):
        self.attr_name = attr_name
        self.kind = kind
        self.node_name = node_name
        where = f" on node '{node_name}'" if node_name else ""
        super().__init__(f"Unsupported '{kind}' attribute: {attr_name}{where}")


class ShapeMismatch(BuildError, ValueError):
    """A buffer or tensor does not match its declared shape."""

    def __init__(self, message: str, name: str | None = None):
        self.name = name
        super().__init__(message)


class DependencyNotFound(BuildError, LookupError):
    """A consumer references a producer slot that was never registered."""

    def __init__(self, key: tuple[str, int], consumer: str | None = None):
        self.key = key
        self.consumer = consumer
        by = f" (needed by '{consumer}')" if consumer else ""
        super().__init__(f"No tensor registered for output {key[1]} of '{key[0]}'{by}")


class OutputArityMismatch(BuildError):
    """An operator builder returned a different number of outputs than declared."""

    def __init__(self, node_name: str, expected: int, actual: int):
        self.node_name = node_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Node '{node_name}' declares {expected} output(s) but its builder "
            f"returned {actual}"
        )


class BuilderContractViolation(BuildError, TypeError):
    """An operator builder returned something that is not a tensor handle."""

    def __init__(self, node_name: str, message: str):
        self.node_name = node_name
        super().__init__(f"Builder for node '{node_name}' {message}")


class UnboundIO(BuildError):
    """A declared network input or output never received a tensor."""

    def __init__(self, name: str, direction: str):
        self.name = name
        self.direction = direction
        super().__init__(f"Declared network {direction} '{name}' is not bound to a tensor")


class RegistryConflict(BuildError):
    """A producer slot was registered twice within one build."""

    def __init__(self, key: tuple[str, int]):
        self.key = key
        super().__init__(f"Output {key[1]} of '{key[0]}' is already registered")
