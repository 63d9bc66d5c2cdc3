"""Attribute extraction for operator nodes.

Converts a node's typed attribute set into an attribute dictionary of tagged values
that operator builders consume.
"""

__docformat__ = "restructuredtext"
__all__ = ["AttrValue", "AttributeDict", "extract_attributes"]

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from torchlower.errors import UnsupportedAttributeKind
from torchlower.network.types import Attribute, AttributeKind, GraphNode

# Inclusive ranges of the integer sequence kinds
_INT_RANGES: dict[AttributeKind, tuple[int, int]] = {
    AttributeKind.INT8S: (-(2**7), 2**7 - 1),
    AttributeKind.INT16S: (-(2**15), 2**15 - 1),
    AttributeKind.INT32S: (-(2**31), 2**31 - 1),
    AttributeKind.INT64S: (-(2**63), 2**63 - 1),
    AttributeKind.UINT8S: (0, 2**8 - 1),
    AttributeKind.UINT16S: (0, 2**16 - 1),
    AttributeKind.UINT32S: (0, 2**32 - 1),
    AttributeKind.UINT64S: (0, 2**64 - 1),
}


@dataclass(frozen=True)
class AttrValue:
    """Attribute value tagged with its kind.

    :param kind: Value kind (never VOID or VOID_PTR)
    :param value: bool, int, float, str, or a tuple of one of those
    """

    kind: AttributeKind
    value: Any


AttributeDict = dict[str, AttrValue]


def _int_sequence(kind: AttributeKind) -> Callable[[Attribute], tuple[int, ...]]:
    low, high = _INT_RANGES[kind]

    def extract(attr: Attribute) -> tuple[int, ...]:
        values = tuple(int(item) for item in attr.value)
        for item in values:
            if not low <= item <= high:
                raise ValueError(
                    f"Attribute {attr.name} value {item} does not fit in {kind.value}"
                )
        return values

    return extract


# Attribute kind extractors
EXTRACT_ATTR_MAP: dict[AttributeKind, Callable[[Attribute], Any]] = {
    AttributeKind.BOOL: lambda x: bool(x.value),
    AttributeKind.INT64: lambda x: int(x.value),
    AttributeKind.DOUBLE: lambda x: float(x.value),
    AttributeKind.STRING: lambda x: str(x.value),
    AttributeKind.STRINGS: lambda x: tuple(str(item) for item in x.value),
    AttributeKind.FLOAT32S: lambda x: tuple(float(item) for item in x.value),
    AttributeKind.FLOAT64S: lambda x: tuple(float(item) for item in x.value),
    **{kind: _int_sequence(kind) for kind in _INT_RANGES},
}


def extract_attributes(node: GraphNode) -> AttributeDict:
    """Build the attribute dictionary of ``node``.

    A fresh dictionary is returned for every call.

    :param node: Operator node
    :return: Attribute name -> tagged value
    :raises UnsupportedAttributeKind: For void or raw-pointer attributes
    """
    attrs: AttributeDict = {}
    for attr in node.attributes:
        extract = EXTRACT_ATTR_MAP.get(attr.kind)
        if extract is None:
            raise UnsupportedAttributeKind(attr.name, attr.kind.value, node.name)
        attrs[attr.name] = AttrValue(attr.kind, extract(attr))
    return attrs
