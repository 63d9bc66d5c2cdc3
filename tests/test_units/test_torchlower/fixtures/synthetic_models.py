"""Synthetic ONNX model builders for lowering tests.

Models use opset 17 so that onnxruntime can serve as the numerical reference.
"""

import numpy as np
import onnx
import onnx.helper as onnx_helper
from onnx import TensorProto, numpy_helper

OPSET = 17


def _make_model(nodes, name, inputs, outputs, initializers=None, opset=OPSET):
    graph = onnx_helper.make_graph(nodes, name, inputs, outputs, initializers or [])
    model = onnx_helper.make_model(graph, opset_imports=[onnx_helper.make_opsetid("", opset)])
    model.ir_version = 8
    return model


def _value(name, shape, elem_type=TensorProto.FLOAT):
    return onnx_helper.make_tensor_value_info(name, elem_type, shape)


def _init(name, array):
    return numpy_helper.from_array(np.asarray(array), name)


class SyntheticONNXModels:
    """Factory for creating synthetic ONNX models for testing."""

    # ===== Basic Models =====

    @staticmethod
    def create_identity_model(shape=(1, 3)):
        node = onnx_helper.make_node("Identity", inputs=["X"], outputs=["Y"])
        return _make_model([node], "IdentityModel", [_value("X", shape)], [_value("Y", shape)])

    @staticmethod
    def create_add_model(shape=(2, 3)):
        node = onnx_helper.make_node("Add", inputs=["X", "Y"], outputs=["Z"])
        return _make_model(
            [node],
            "AddModel",
            [_value("X", shape), _value("Y", shape)],
            [_value("Z", shape)],
        )

    @staticmethod
    def create_sub_model(shape=(2, 3)):
        node = onnx_helper.make_node("Sub", inputs=["A", "B"], outputs=["C"])
        return _make_model(
            [node],
            "SubModel",
            [_value("A", shape), _value("B", shape)],
            [_value("C", shape)],
        )

    @staticmethod
    def create_linear_model(input_size=3, output_size=2):
        rng = np.random.default_rng(42)
        weight = rng.standard_normal((output_size, input_size)).astype(np.float32)
        bias = rng.standard_normal(output_size).astype(np.float32)
        node = onnx_helper.make_node(
            "Gemm", inputs=["X", "W", "B"], outputs=["Y"], alpha=1.0, beta=1.0, transB=1
        )
        return _make_model(
            [node],
            "LinearModel",
            [_value("X", [1, input_size])],
            [_value("Y", [1, output_size])],
            [_init("W", weight), _init("B", bias)],
        )

    @staticmethod
    def create_mlp_model():
        rng = np.random.default_rng(0)
        w1 = rng.standard_normal((8, 4)).astype(np.float32)
        b1 = rng.standard_normal(8).astype(np.float32)
        w2 = rng.standard_normal((8, 2)).astype(np.float32)
        nodes = [
            onnx_helper.make_node("Gemm", ["X", "W1", "B1"], ["H"], transB=1, name="fc1"),
            onnx_helper.make_node("Relu", ["H"], ["R"], name="relu"),
            onnx_helper.make_node("MatMul", ["R", "W2"], ["Y"], name="fc2"),
        ]
        return _make_model(
            nodes,
            "MLPModel",
            [_value("X", [2, 4])],
            [_value("Y", [2, 2])],
            [_init("W1", w1), _init("B1", b1), _init("W2", w2)],
        )

    # ===== Layer Models =====

    @staticmethod
    def create_conv2d_model(pads=(1, 1, 1, 1)):
        rng = np.random.default_rng(1)
        weight = rng.standard_normal((4, 3, 3, 3)).astype(np.float32)
        bias = rng.standard_normal(4).astype(np.float32)
        node = onnx_helper.make_node(
            "Conv",
            ["X", "W", "B"],
            ["Y"],
            kernel_shape=[3, 3],
            pads=list(pads),
            strides=[1, 1],
            name="conv",
        )
        out_h = 6 + pads[0] + pads[2] - 2
        out_w = 6 + pads[1] + pads[3] - 2
        return _make_model(
            [node],
            "Conv2dModel",
            [_value("X", [1, 3, 6, 6])],
            [_value("Y", [1, 4, out_h, out_w])],
            [_init("W", weight), _init("B", bias)],
        )

    @staticmethod
    def create_batchnorm_model(channels=3):
        rng = np.random.default_rng(2)
        node = onnx_helper.make_node(
            "BatchNormalization", ["X", "scale", "bias", "mean", "var"], ["Y"], epsilon=1e-3
        )
        return _make_model(
            [node],
            "BatchNormModel",
            [_value("X", [2, channels, 4, 4])],
            [_value("Y", [2, channels, 4, 4])],
            [
                _init("scale", rng.standard_normal(channels).astype(np.float32)),
                _init("bias", rng.standard_normal(channels).astype(np.float32)),
                _init("mean", rng.standard_normal(channels).astype(np.float32)),
                _init("var", rng.uniform(0.5, 2.0, channels).astype(np.float32)),
            ],
        )

    @staticmethod
    def create_pool_model(op_type="MaxPool"):
        node = onnx_helper.make_node(op_type, ["X"], ["Y"], kernel_shape=[2, 2], strides=[2, 2])
        return _make_model(
            [node], f"{op_type}Model", [_value("X", [1, 2, 4, 4])], [_value("Y", [1, 2, 2, 2])]
        )

    @staticmethod
    def create_global_avgpool_model():
        node = onnx_helper.make_node("GlobalAveragePool", ["X"], ["Y"])
        return _make_model(
            [node], "GlobalAvgPoolModel", [_value("X", [1, 3, 4, 4])], [_value("Y", [1, 3, 1, 1])]
        )

    @staticmethod
    def create_softmax_model(axis=-1):
        node = onnx_helper.make_node("Softmax", ["X"], ["Y"], axis=axis)
        return _make_model([node], "SoftmaxModel", [_value("X", [2, 5])], [_value("Y", [2, 5])])

    @staticmethod
    def create_resnet_block():
        rng = np.random.default_rng(3)
        w1 = rng.standard_normal((3, 3, 3, 3)).astype(np.float32) * 0.1
        w2 = rng.standard_normal((3, 3, 3, 3)).astype(np.float32) * 0.1
        nodes = [
            onnx_helper.make_node("Conv", ["X", "W1"], ["C1"], pads=[1, 1, 1, 1], name="conv1"),
            onnx_helper.make_node("Relu", ["C1"], ["R1"], name="relu1"),
            onnx_helper.make_node("Conv", ["R1", "W2"], ["C2"], pads=[1, 1, 1, 1], name="conv2"),
            onnx_helper.make_node("Add", ["C2", "X"], ["S"], name="skip"),
            onnx_helper.make_node("Relu", ["S"], ["Y"], name="relu2"),
        ]
        return _make_model(
            nodes,
            "ResNetBlock",
            [_value("X", [1, 3, 5, 5])],
            [_value("Y", [1, 3, 5, 5])],
            [_init("W1", w1), _init("W2", w2)],
        )

    # ===== Operation Models =====

    @staticmethod
    def create_reshape_model():
        node = onnx_helper.make_node("Reshape", ["X", "shape"], ["Y"])
        return _make_model(
            [node],
            "ReshapeModel",
            [_value("X", [2, 3, 4])],
            [_value("Y", [2, 12])],
            [_init("shape", np.array([0, -1], dtype=np.int64))],
        )

    @staticmethod
    def create_shape_reshape_model():
        nodes = [
            onnx_helper.make_node("Shape", ["Y"], ["S"], name="shape"),
            onnx_helper.make_node("Reshape", ["X", "S"], ["Z"], name="reshape"),
        ]
        return _make_model(
            nodes,
            "ShapeReshapeModel",
            [_value("X", [6]), _value("Y", [2, 3])],
            [_value("Z", [2, 3])],
        )

    @staticmethod
    def create_flatten_model():
        node = onnx_helper.make_node("Flatten", ["X"], ["Y"], axis=1)
        return _make_model(
            [node], "FlattenModel", [_value("X", [2, 3, 2, 2])], [_value("Y", [2, 12])]
        )

    @staticmethod
    def create_transpose_model():
        node = onnx_helper.make_node("Transpose", ["X"], ["Y"], perm=[0, 2, 1])
        return _make_model(
            [node], "TransposeModel", [_value("X", [2, 3, 4])], [_value("Y", [2, 4, 3])]
        )

    @staticmethod
    def create_concat_model():
        node = onnx_helper.make_node("Concat", ["X", "Y"], ["Z"], axis=1)
        return _make_model(
            [node],
            "ConcatModel",
            [_value("X", [2, 3]), _value("Y", [2, 2])],
            [_value("Z", [2, 5])],
        )

    @staticmethod
    def create_split_model():
        node = onnx_helper.make_node(
            "Split", ["X", "split"], ["A", "B"], axis=1, name="splitter"
        )
        return _make_model(
            [node],
            "SplitModel",
            [_value("X", [2, 5])],
            [_value("A", [2, 2]), _value("B", [2, 3])],
            [_init("split", np.array([2, 3], dtype=np.int64))],
        )

    @staticmethod
    def create_module_attribute_names_model():
        """Tensor names that clash with torch.nn.Module attributes."""
        node = onnx_helper.make_node("Add", ["forward", "training"], ["to"], name="add")
        return _make_model(
            [node],
            "ModuleAttributeNamesModel",
            [_value("forward", [2, 3])],
            [_value("to", [2, 3])],
            [_init("training", np.full((2, 3), 0.5, dtype=np.float32))],
        )

    @staticmethod
    def create_equal_split_model():
        """Opset 13 Split without sizes: equal parts, one per output."""
        node = onnx_helper.make_node("Split", ["X"], ["A", "B"], axis=1, name="halves")
        return _make_model(
            [node],
            "EqualSplitModel",
            [_value("X", [2, 6])],
            [_value("A", [2, 3]), _value("B", [2, 3])],
            opset=13,
        )

    @staticmethod
    def create_clip_model(min_value=None, max_value=None):
        """Clip whose bounds are given as inputs; a missing bound is left empty."""
        inputs = ["X", "", ""]
        initializers = []
        if min_value is not None:
            inputs[1] = "lo"
            initializers.append(_init("lo", np.array(min_value, dtype=np.float32)))
        if max_value is not None:
            inputs[2] = "hi"
            initializers.append(_init("hi", np.array(max_value, dtype=np.float32)))
        node = onnx_helper.make_node("Clip", inputs, ["Y"], name="clip")
        return _make_model(
            [node],
            "ClipModel",
            [_value("X", [2, 4])],
            [_value("Y", [2, 4])],
            initializers,
        )

    @staticmethod
    def create_squeeze_unsqueeze_model():
        nodes = [
            onnx_helper.make_node("Squeeze", ["X", "axes"], ["S"], name="squeeze"),
            onnx_helper.make_node("Unsqueeze", ["S", "new_axes"], ["Y"], name="unsqueeze"),
        ]
        return _make_model(
            nodes,
            "SqueezeUnsqueezeModel",
            [_value("X", [1, 3, 1, 4])],
            [_value("Y", [3, 1, 4, 1])],
            [
                _init("axes", np.array([0, 2], dtype=np.int64)),
                _init("new_axes", np.array([1, -1], dtype=np.int64)),
            ],
        )

    @staticmethod
    def create_reduce_mean_model(keepdims=0):
        node = onnx_helper.make_node("ReduceMean", ["X"], ["Y"], axes=[1], keepdims=keepdims)
        out_shape = [2, 1, 4] if keepdims else [2, 4]
        return _make_model(
            [node], "ReduceMeanModel", [_value("X", [2, 3, 4])], [_value("Y", out_shape)]
        )

    @staticmethod
    def create_reduce_sum_model():
        node = onnx_helper.make_node("ReduceSum", ["X", "axes"], ["Y"], keepdims=1)
        return _make_model(
            [node],
            "ReduceSumModel",
            [_value("X", [2, 3, 4])],
            [_value("Y", [2, 3, 1])],
            [_init("axes", np.array([-1], dtype=np.int64))],
        )

    @staticmethod
    def create_gather_model():
        node = onnx_helper.make_node("Gather", ["X", "indices"], ["Y"], axis=1)
        return _make_model(
            [node],
            "GatherModel",
            [_value("X", [2, 4])],
            [_value("Y", [2, 3])],
            [_init("indices", np.array([3, 0, -1], dtype=np.int64))],
        )

    @staticmethod
    def create_cast_model(to=TensorProto.DOUBLE):
        node = onnx_helper.make_node("Cast", ["X"], ["Y"], to=to)
        return _make_model(
            [node], "CastModel", [_value("X", [2, 3])], [_value("Y", [2, 3], to)]
        )

    @staticmethod
    def create_int_div_model():
        node = onnx_helper.make_node("Div", ["A", "B"], ["C"])
        return _make_model(
            [node],
            "IntDivModel",
            [_value("A", [4], TensorProto.INT32), _value("B", [4], TensorProto.INT32)],
            [_value("C", [4], TensorProto.INT32)],
        )

    # ===== Graph Structure Models =====

    @staticmethod
    def create_constant_node_model():
        nodes = [
            onnx_helper.make_node(
                "Constant",
                [],
                ["K"],
                value=numpy_helper.from_array(np.full((2, 3), 2.0, dtype=np.float32)),
            ),
            onnx_helper.make_node("Mul", ["X", "K"], ["Y"], name="scale"),
        ]
        return _make_model(nodes, "ConstantModel", [_value("X", [2, 3])], [_value("Y", [2, 3])])

    @staticmethod
    def create_multi_output_model():
        nodes = [
            onnx_helper.make_node("Relu", ["X"], ["R"], name="relu"),
            onnx_helper.make_node("Sigmoid", ["X"], ["S"], name="sigmoid"),
        ]
        return _make_model(
            nodes,
            "MultiOutputModel",
            [_value("X", [2, 3])],
            [_value("S", [2, 3]), _value("R", [2, 3])],
        )

    @staticmethod
    def create_unsorted_model():
        """Relu placed before the Neg producing its input."""
        nodes = [
            onnx_helper.make_node("Relu", ["N"], ["Y"], name="relu"),
            onnx_helper.make_node("Neg", ["X"], ["N"], name="neg"),
        ]
        return _make_model(nodes, "UnsortedModel", [_value("X", [2, 3])], [_value("Y", [2, 3])])

    @staticmethod
    def create_unsupported_op_model():
        node = onnx_helper.make_node("Hardmax", ["X"], ["Y"], name="hardmax")
        return _make_model([node], "UnsupportedModel", [_value("X", [1, 4])], [_value("Y", [1, 4])])

    @staticmethod
    def create_attribute_model():
        """Node carrying one attribute of every ONNX payload kind used by the loader."""
        node = onnx_helper.make_node(
            "Custom",
            ["X"],
            ["Y"],
            name="custom",
            alpha=0.5,
            axis=1,
            mode="nearest",
            scales=[1.0, 2.0],
            pads=[0, 1],
            names=["a", "b"],
            value=numpy_helper.from_array(np.array([1, 2, 3], dtype=np.int32)),
        )
        return _make_model([node], "AttributeModel", [_value("X", [1])], [_value("Y", [1])])

    @staticmethod
    def serialize(model: onnx.ModelProto) -> bytes:
        return model.SerializeToString()
