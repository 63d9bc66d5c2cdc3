"""Program builder: lowers a host network into a target program.

State machine::

    UNINITIALIZED -> TRAVERSING -> BOUND -> BUILT

Nodes are dispatched strictly in the supplied topological order. A failure at any
point aborts the build with a :class:`~torchlower.errors.BuildError`.
"""

__docformat__ = "restructuredtext"
__all__ = ["BuildState", "ProgramBuilder", "build_program"]

from enum import Enum

from torchlower.errors import MissingGraphRepresentation
from torchlower.lower.layout import LayoutPolicy, get_layout_policy
from torchlower.lower.translators import TRANSLATORS, LoweringContext
from torchlower.network.types import HostNetwork
from torchlower.ops.registry import OperatorRegistry, default_registry
from torchlower.target import Program, TargetGraph


class BuildState(Enum):
    UNINITIALIZED = "uninitialized"
    TRAVERSING = "traversing"
    BOUND = "bound"
    BUILT = "built"


class ProgramBuilder:
    """Single-use builder of one program.

    :param network: Host network to lower
    :param operators: Operator registry (default: built-in ONNX operators)
    :param layout: Layout policy or policy name (default: native)
    :param name: Class name of the generated module
    """

    def __init__(
        self,
        network: HostNetwork,
        operators: OperatorRegistry | None = None,
        layout: LayoutPolicy | str | None = None,
        name: str = "LoweredProgram",
    ):
        self.network = network
        self.operators = operators if operators is not None else default_registry()
        self.layout = get_layout_policy(layout)
        self.name = name
        self.state = BuildState.UNINITIALIZED
        self._input_names: list[str] = []
        self._output_names: list[str] = []

    def build(self) -> Program:
        """Lower the network.

        :return: Program with inputs and outputs in host-declared order
        :raises RuntimeError: If the builder was already used
        """
        if self.state is not BuildState.UNINITIALIZED:
            raise RuntimeError(f"ProgramBuilder cannot be reused (state: {self.state.value})")
        if self.network.nodes is None:
            raise MissingGraphRepresentation(self.network.name)

        # Traversing
        self.state = BuildState.TRAVERSING
        self._input_names = list(self.network.inputs)
        self._output_names = list(self.network.outputs)
        ctx = LoweringContext(
            network=self.network,
            target=TargetGraph(self.name),
            operators=self.operators,
            layout=self.layout,
        )
        for node in self.network.nodes:
            TRANSLATORS[node.kind](ctx, node)

        # Bound
        self.state = BuildState.BOUND
        inputs = ctx.io.collect_inputs(self._input_names)
        outputs = ctx.io.collect_outputs(self._output_names)

        # Built
        program = ctx.target.build_program(inputs, outputs)
        self.state = BuildState.BUILT
        return program


def build_program(
    network: HostNetwork,
    operators: OperatorRegistry | None = None,
    layout: LayoutPolicy | str | None = None,
) -> Program:
    """Lower ``network`` into an executable program.

    :param network: Host network
    :param operators: Operator registry (default: built-in ONNX operators)
    :param layout: Layout policy or policy name (default: native)
    :return: Immutable program
    """
    return ProgramBuilder(network, operators=operators, layout=layout).build()
