"""Builders for ONNX layer operators (convolution, normalization, pooling, activations)."""

from __future__ import annotations

__docformat__ = "restructuredtext"
__all__ = ["onnx_gemm", "register_layer_builders"]

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import torch
import torch.nn.functional as F  # noqa: N812

from torchlower.ops._utils import attr, optional_operand, require_operands, torch_pad
from torchlower.target import emit

if TYPE_CHECKING:
    from torchlower.lower.attrs import AttributeDict
    from torchlower.ops.registry import OperatorRegistry
    from torchlower.target import TensorHandle

_CONV_FUNCTIONS = {1: F.conv1d, 2: F.conv2d, 3: F.conv3d}
_MAX_POOL_FUNCTIONS = {1: F.max_pool1d, 2: F.max_pool2d, 3: F.max_pool3d}
_AVG_POOL_FUNCTIONS = {1: F.avg_pool1d, 2: F.avg_pool2d, 3: F.avg_pool3d}


def onnx_gemm(
    a: torch.Tensor,
    b: torch.Tensor,
    c: torch.Tensor | None = None,
    alpha: float = 1.0,
    beta: float = 1.0,
    trans_a: bool = False,
    trans_b: bool = False,
) -> torch.Tensor:
    """ONNX Gemm: ``alpha * A' @ B' + beta * C``."""
    if trans_a:
        a = a.transpose(0, 1)
    if trans_b:
        b = b.transpose(0, 1)
    y = torch.matmul(a, b)
    if alpha != 1.0:
        y = y * alpha
    if c is not None:
        y = y + (c * beta if beta != 1.0 else c)
    return y


def _validate_auto_pad(attrs: AttributeDict, op_name: str) -> None:
    auto_pad = attr(attrs, "auto_pad", "NOTSET")
    if auto_pad != "NOTSET":
        raise ValueError(f"{op_name} with auto_pad={auto_pad} is not supported")


def _kernel_args(attrs: AttributeDict, spatial: int) -> dict[str, Any]:
    """Strides, dilations and begin/end pads with ONNX defaults."""
    pads = tuple(attr(attrs, "pads", (0,) * 2 * spatial))
    return {
        "strides": tuple(attr(attrs, "strides", (1,) * spatial)),
        "dilations": tuple(attr(attrs, "dilations", (1,) * spatial)),
        "begin": pads[:spatial],
        "end": pads[spatial:],
    }


def _lookup(functions: dict[int, Any], spatial: int, op_name: str) -> Any:
    if spatial not in functions:
        raise NotImplementedError(f"Unsupported {op_name}: {spatial}D")
    return functions[spatial]


def _conv(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 2, "Conv")
    x, weight, bias = operands[0], operands[1], optional_operand(operands, 2)
    _validate_auto_pad(attrs, "Conv")
    spatial = len(weight.shape) - 2
    conv = _lookup(_CONV_FUNCTIONS, spatial, "Conv")
    kernel = _kernel_args(attrs, spatial)

    padding: Any = kernel["begin"]
    if kernel["begin"] != kernel["end"]:
        x = emit(F.pad, x, torch_pad(kernel["begin"], kernel["end"]))
        padding = 0
    y = emit(
        conv,
        x,
        weight,
        bias,
        stride=kernel["strides"],
        padding=padding,
        dilation=kernel["dilations"],
        groups=attr(attrs, "group", 1),
    )
    return (y,)


def _gemm(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 2, "Gemm")
    y = emit(
        onnx_gemm,
        operands[0],
        operands[1],
        optional_operand(operands, 2),
        alpha=attr(attrs, "alpha", 1.0),
        beta=attr(attrs, "beta", 1.0),
        trans_a=bool(attr(attrs, "transA", 0)),
        trans_b=bool(attr(attrs, "transB", 0)),
    )
    return (y,)


def _batchnorm(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 5, "BatchNormalization")
    training_mode = attr(attrs, "training_mode", 0)
    if training_mode != 0:
        raise ValueError(f"BatchNormalization with training_mode={training_mode} is not supported")
    x, scale, bias, mean, var = operands[:5]
    y = emit(
        F.batch_norm,
        x,
        mean,
        var,
        scale,
        bias,
        training=False,
        eps=attr(attrs, "epsilon", 1e-5),
    )
    return (y,)


def _maxpool(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "MaxPool")
    x = operands[0]
    _validate_auto_pad(attrs, "MaxPool")
    kernel_shape = attr(attrs, "kernel_shape")
    if kernel_shape is None:
        raise ValueError("MaxPool kernel_shape is required")
    if attr(attrs, "storage_order", 0) != 0:
        raise ValueError("MaxPool with storage_order=1 is not supported")
    spatial = len(kernel_shape)
    pool = _lookup(_MAX_POOL_FUNCTIONS, spatial, "MaxPool")
    kernel = _kernel_args(attrs, spatial)

    padding: Any = kernel["begin"]
    if kernel["begin"] != kernel["end"]:
        x = emit(F.pad, x, torch_pad(kernel["begin"], kernel["end"]), value=-math.inf)
        padding = 0
    y = emit(
        pool,
        x,
        tuple(kernel_shape),
        stride=kernel["strides"],
        padding=padding,
        dilation=kernel["dilations"],
        ceil_mode=bool(attr(attrs, "ceil_mode", 0)),
    )
    return (y,)


def _avgpool(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "AveragePool")
    _validate_auto_pad(attrs, "AveragePool")
    kernel_shape = attr(attrs, "kernel_shape")
    if kernel_shape is None:
        raise ValueError("AveragePool kernel_shape is required")
    spatial = len(kernel_shape)
    pool = _lookup(_AVG_POOL_FUNCTIONS, spatial, "AveragePool")
    kernel = _kernel_args(attrs, spatial)
    if kernel["begin"] != kernel["end"]:
        raise ValueError(
            f"Asymmetric padding {kernel['begin'] + kernel['end']} is not supported; "
            "start and end padding must be equal"
        )
    if any(dilation != 1 for dilation in kernel["dilations"]):
        raise ValueError(f"AveragePool with dilations={kernel['dilations']} is not supported")
    y = emit(
        pool,
        operands[0],
        tuple(kernel_shape),
        stride=kernel["strides"],
        padding=kernel["begin"],
        ceil_mode=bool(attr(attrs, "ceil_mode", 0)),
        count_include_pad=bool(attr(attrs, "count_include_pad", 0)),
    )
    return (y,)


def _global_avgpool(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "GlobalAveragePool")
    x = operands[0]
    return (emit(torch.mean, x, dim=tuple(range(2, len(x.shape))), keepdim=True),)


def _softmax(op_name: str, fn):
    def builder(operands: Sequence[TensorHandle], attrs: AttributeDict):
        require_operands(operands, 1, op_name)
        return (emit(fn, operands[0], dim=attr(attrs, "axis", -1)),)

    return builder


def _leaky_relu(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "LeakyRelu")
    return (emit(F.leaky_relu, operands[0], negative_slope=attr(attrs, "alpha", 0.01)),)


def _clip(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Clip")
    # Opset >= 11 passes bounds as inputs, older opsets as attributes
    low = optional_operand(operands, 1)
    high = optional_operand(operands, 2)
    if low is None:
        low = attr(attrs, "min")
    if high is None:
        high = attr(attrs, "max")
    if low is None and high is None:
        return (operands[0],)
    return (emit(torch.clamp, operands[0], min=low, max=high),)


def _dropout(operands: Sequence[TensorHandle], attrs: AttributeDict):
    require_operands(operands, 1, "Dropout")
    return (operands[0],)


def register_layer_builders(registry: OperatorRegistry) -> None:
    """Register layer builders.

    :param registry: Registry to populate
    """
    registry.register("Conv", _conv)
    registry.register("Gemm", _gemm)
    registry.register("BatchNormalization", _batchnorm)
    registry.register("MaxPool", _maxpool)
    registry.register("AveragePool", _avgpool)
    registry.register("GlobalAveragePool", _global_avgpool)
    registry.register("Softmax", _softmax("Softmax", torch.softmax))
    registry.register("LogSoftmax", _softmax("LogSoftmax", torch.log_softmax))
    registry.register("LeakyRelu", _leaky_relu)
    registry.register("Clip", _clip)
    registry.register("Dropout", _dropout)
