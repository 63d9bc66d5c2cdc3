"""Lowering engine: tensor registry, attribute extraction, node translators."""

__docformat__ = "restructuredtext"
__all__ = [
    "AttrValue",
    "BuildState",
    "ConsumerKindLayout",
    "IOBindings",
    "LayoutPolicy",
    "NativeLayout",
    "ProgramBuilder",
    "TensorRegistry",
    "build_program",
    "extract_attributes",
    "get_layout_policy",
]

from torchlower.lower.attrs import AttrValue, extract_attributes
from torchlower.lower.layout import (
    ConsumerKindLayout,
    LayoutPolicy,
    NativeLayout,
    get_layout_policy,
)
from torchlower.lower.program_builder import BuildState, ProgramBuilder, build_program
from torchlower.lower.registry import IOBindings, TensorRegistry
