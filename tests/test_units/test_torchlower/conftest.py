"""Shared pytest configuration and fixtures for torchlower unit tests.

Model file fixtures are saved under ``tmp_path``. Reference execution helpers
live in ``fixtures/reference.py``.
"""

import pytest

from tests.test_units.test_torchlower.fixtures.synthetic_models import SyntheticONNXModels

# ===== Model File Fixtures =====


@pytest.fixture
def identity_model(save_model):
    """Create and save Identity ONNX model."""
    return save_model(SyntheticONNXModels.create_identity_model(), "identity.onnx")


@pytest.fixture
def linear_model(save_model):
    """Create and save Linear ONNX model."""
    return save_model(SyntheticONNXModels.create_linear_model(), "linear.onnx")


@pytest.fixture
def mlp_model(save_model):
    """Create and save 2-layer MLP ONNX model."""
    return save_model(SyntheticONNXModels.create_mlp_model(), "mlp.onnx")


@pytest.fixture
def resnet_block_model(save_model):
    """Create and save a residual convolution block."""
    return save_model(SyntheticONNXModels.create_resnet_block(), "resnet_block.onnx")


@pytest.fixture
def unsupported_model(save_model):
    """Create and save a model with an operator no builder handles."""
    return save_model(SyntheticONNXModels.create_unsupported_op_model(), "unsupported.onnx")
