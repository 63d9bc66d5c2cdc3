"""Pytest configuration and shared fixtures for torchlower tests."""

import numpy as np
import onnx
import pytest


@pytest.fixture
def rng():
    """Seeded random generator for reproducible test inputs."""
    return np.random.default_rng(42)


@pytest.fixture
def save_model(tmp_path):
    """Save an ONNX model under ``tmp_path`` and return its path."""

    def _save(model: onnx.ModelProto, filename: str) -> str:
        path = tmp_path / filename
        onnx.save(model, str(path))
        return str(path)

    return _save
