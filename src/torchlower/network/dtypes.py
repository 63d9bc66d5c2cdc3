"""Element type tables shared by the host network and the operator builders."""

__docformat__ = "restructuredtext"
__all__ = [
    "ONNX_TO_TORCH_DTYPE",
    "onnx_dtype_to_torch",
]

import torch
from onnx import TensorProto

# ONNX dtype to PyTorch dtype mapping
ONNX_TO_TORCH_DTYPE: dict[int, torch.dtype] = {
    TensorProto.FLOAT: torch.float32,
    TensorProto.UINT8: torch.uint8,
    TensorProto.INT8: torch.int8,
    TensorProto.INT16: torch.int16,
    TensorProto.INT32: torch.int32,
    TensorProto.INT64: torch.int64,
    TensorProto.BOOL: torch.bool,
    TensorProto.FLOAT16: torch.float16,
    TensorProto.DOUBLE: torch.float64,
    TensorProto.BFLOAT16: torch.bfloat16,
}


def onnx_dtype_to_torch(onnx_dtype: int) -> torch.dtype:
    """Convert ONNX dtype code to PyTorch dtype.

    :param onnx_dtype: ONNX data type code
    :return: PyTorch dtype
    :raises NotImplementedError: If PyTorch has no matching dtype
    """
    dtype = ONNX_TO_TORCH_DTYPE.get(onnx_dtype)
    if dtype is None:
        name = TensorProto.DataType.Name(onnx_dtype) if onnx_dtype else "UNDEFINED"
        raise NotImplementedError(f"ONNX element type {name} is not supported")
    return dtype
