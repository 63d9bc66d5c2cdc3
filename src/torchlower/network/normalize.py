"""ONNX model loading and preprocessing."""

__docformat__ = "restructuredtext"
__all__ = [
    "MAX_TESTED_OPSET",
    "MIN_TESTED_OPSET",
    "RECOMMENDED_OPSET",
    "load_and_preprocess_onnx_model",
]

import warnings
from pathlib import Path

import onnx
from onnx import ModelProto, version_converter

# Opset range covered by the built-in operator builders
RECOMMENDED_OPSET = 20
MIN_TESTED_OPSET = 13
MAX_TESTED_OPSET = 21


def _check_model(model: ModelProto) -> None:
    """Check ONNX model validity using onnx.checker.

    :param model: Input ONNX model
    :raises ValueError: If model is invalid
    """
    try:
        onnx.checker.check_model(model)
    except (onnx.checker.ValidationError, ValueError, AttributeError, TypeError) as error:
        raise ValueError(f"Invalid ONNX model: {error}") from error


def _convert_version(model: ModelProto, target_opset: int) -> ModelProto:
    """Convert ONNX model to specified opset version.

    Conversion failures keep the original model and emit a warning.

    :param model: Input ONNX model
    :param target_opset: Target opset version
    :return: Converted model
    """
    current_opset = model.opset_import[0].version if model.opset_import else 0

    if not MIN_TESTED_OPSET <= target_opset <= MAX_TESTED_OPSET:
        warnings.warn(
            f"Target opset {target_opset} is outside "
            f"tested range [{MIN_TESTED_OPSET}, {MAX_TESTED_OPSET}]. "
            f"Recommended opset is {RECOMMENDED_OPSET}.",
            UserWarning,
            stacklevel=2,
        )

    if current_opset != target_opset:
        try:
            model = version_converter.convert_version(model, target_opset)
        except (ValueError, RuntimeError, AttributeError) as error:
            warnings.warn(
                f"Version conversion failed "
                f"from opset {current_opset} to {target_opset}: {error}. "
                f"Keeping original opset version.",
                UserWarning,
                stacklevel=2,
            )
    return model


def _infer_shapes(model: ModelProto) -> ModelProto:
    """Run ONNX shape inference, warning instead of failing."""
    try:
        model = onnx.shape_inference.infer_shapes(model)
    except (ValueError, RuntimeError, AttributeError) as error:
        warnings.warn(f"Shape inference failed: {error}", UserWarning, stacklevel=2)
    return model


def load_and_preprocess_onnx_model(
    onnx_path: str | Path,
    target_opset: int | None = None,
    infer_shapes: bool = True,
    check_model: bool = True,
) -> ModelProto:
    """Load ONNX model and prepare it for lowering.

    Preprocessing steps:
    1. Load model from file
    2. Validate with ONNX checker (if enabled)
    3. Convert to target opset version (if specified)
    4. Run shape inference (if enabled)

    :param onnx_path: Path to ONNX file
    :param target_opset: Target opset version (None = keep original)
    :param infer_shapes: Whether to run shape inference
    :param check_model: Whether to validate model with onnx.checker
    :return: Preprocessed model
    """
    model = onnx.load(str(onnx_path))

    if check_model:
        _check_model(model)

    if target_opset is not None:
        model = _convert_version(model, target_opset)
        if check_model:
            _check_model(model)

    if infer_shapes:
        model = _infer_shapes(model)

    return model
