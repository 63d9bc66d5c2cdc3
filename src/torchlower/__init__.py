__docformat__ = "restructuredtext"
__version__ = "2026.1.0"
__all__ = [
    "BuildError",
    "HostNetwork",
    "OperatorRegistry",
    "Program",
    "ProgramBuilder",
    "TorchLower",
    "build_host_network",
    "build_program",
    "default_registry",
]

from torchlower._torchlower import TorchLower
from torchlower.errors import BuildError
from torchlower.lower import ProgramBuilder, build_program
from torchlower.network import HostNetwork, build_host_network
from torchlower.ops import OperatorRegistry, default_registry
from torchlower.target import Program
