__docformat__ = "restructuredtext"
__all__ = ["TorchLower"]

import re
from pathlib import Path

import torch
from torch import fx

from torchlower.lower import LayoutPolicy, ProgramBuilder
from torchlower.network import build_host_network, load_and_preprocess_onnx_model
from torchlower.ops import OperatorRegistry
from torchlower.target import Program


def _class_name(stem: str) -> str:
    """CamelCase class name from a file stem (e.g. "resnet_block-v2" -> "ResnetBlockV2")."""
    parts = [part for part in re.split(r"[^0-9a-zA-Z]+", stem) if part]
    name = "".join(part[0].upper() + part[1:] for part in parts) or "LoweredProgram"
    return f"M{name}" if name[0].isdigit() else name


def _helper_imports(module: fx.GraphModule) -> list[str]:
    """Import statements for torchlower helpers referenced by the generated code.

    ``GraphModule.to_folder`` only imports torch, so helpers such as ``onnx_gemm``
    must be imported under the global names the code generator gave them.
    """
    python_code = module.graph.python_code(root_module="self")
    lines = []
    for name, obj in sorted(python_code.globals.items()):
        owner = getattr(obj, "__module__", None) or ""
        if callable(obj) and owner.startswith("torchlower."):
            lines.append(f"from {owner} import {obj.__name__} as {name}")
    return lines


class TorchLower:
    def __init__(
        self,
        verbose: bool = False,
        layout: LayoutPolicy | str = "native",
        operators: OperatorRegistry | None = None,
    ):
        self.verbose = verbose
        self.layout = layout
        self.operators = operators

    def lower(
        self,
        onnx_path: str | Path,
        target_opset: int | None = None,
        input_dtypes: dict[str, torch.dtype] | None = None,
        output_dtypes: dict[str, torch.dtype] | None = None,
    ) -> Program:
        """Lower an ONNX model file into an executable program.

        :param onnx_path: Path to input ONNX model
        :param target_opset: Convert the model to this opset first (None = keep)
        :param input_dtypes: Host precision overrides by input name
        :param output_dtypes: Host precision overrides by output name
        :return: Lowered program
        """
        # Stage 1: Load and normalize ONNX model
        model = load_and_preprocess_onnx_model(onnx_path, target_opset=target_opset)

        # Stage 2: Build host network
        network = build_host_network(model, input_dtypes, output_dtypes)

        # Stage 3: Lower to a torch.fx program
        builder = ProgramBuilder(
            network,
            operators=self.operators,
            layout=self.layout,
            name=_class_name(Path(onnx_path).stem),
        )
        program = builder.build()

        if self.verbose:
            print(
                f"Lowered {onnx_path}: {len(network.nodes or ())} nodes, "
                f"inputs {list(program.input_names)}, outputs {list(program.output_names)}"
            )
        return program

    def convert(
        self,
        onnx_path: str | Path,
        target_dir: str | Path | None = None,
        module_name: str | None = None,
        **kwargs,
    ) -> Program:
        """Lower an ONNX model and save the generated module to a folder.

        The folder holds ``module.py`` and the program's constants, as written by
        ``torch.fx.GraphModule.to_folder``.

        :param onnx_path: Path to input ONNX model
        :param target_dir: Output folder (default: model path without suffix)
        :param module_name: Generated class name (default: from the file name)
        :param kwargs: Forwarded to :meth:`lower`
        :return: Lowered program
        """
        program = self.lower(onnx_path, **kwargs)
        if target_dir is None:
            target_dir = Path(onnx_path).with_suffix("")
        module_name = module_name or _class_name(Path(onnx_path).stem)
        program.module.to_folder(str(target_dir), module_name)
        imports = _helper_imports(program.module)
        if imports:
            module_file = Path(target_dir) / "module.py"
            module_file.write_text("\n".join(imports) + "\n" + module_file.read_text())

        if self.verbose:
            print(f"Generated: {Path(target_dir) / 'module.py'}")
        return program
