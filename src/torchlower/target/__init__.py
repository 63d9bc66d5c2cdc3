"""Target representation: ``torch.fx`` graphs wrapped in tensor handles."""

__docformat__ = "restructuredtext"
__all__ = ["Program", "TargetGraph", "TensorDesc", "TensorHandle", "emit"]

from torchlower.target.graph import TargetGraph, emit
from torchlower.target.types import Program, TensorDesc, TensorHandle
