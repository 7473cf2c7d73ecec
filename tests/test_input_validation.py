"""Tests for the input validation decorators."""

import importlib
import warnings

import numpy as np
import pytest
import torch
from beartype.roar import BeartypeCallHintParamViolation
from jaxtyping import TypeCheckError

import skarap
from skarap.input_validation import convert_inputs, typecheck
from skarap.types import Int1dTensor, Points3d


@convert_inputs
@typecheck
def center(points: Points3d, index: Int1dTensor | None = None) -> Points3d:
    if index is not None:
        points = points[index]
    return points - points.mean(dim=0)


def test_convert_inputs():
    """Lists, arrays and tensors of other dtypes are converted."""
    for points in [
        [[0, 0, 0], [2, 0, 0]],
        np.array([[0, 0, 0], [2, 0, 0]], dtype=np.float32),
        np.array([[0, 0, 0], [2, 0, 0]], dtype=np.int32),
        torch.tensor([[0, 0, 0], [2, 0, 0]], dtype=torch.float32),
    ]:
        out = center(points)
        assert out.dtype == skarap.float_dtype
        assert torch.equal(
            out, torch.tensor([[-1.0, 0, 0], [1.0, 0, 0]]).double()
        )

    out = center([[0, 0, 0], [2, 0, 0], [4, 0, 0]], index=np.array([1, 2]))
    assert torch.allclose(out[:, 0], torch.tensor([-1.0, 1.0]).double())


def test_double_precision_is_kept():
    """Python floats are converted without going through float32."""
    out = center([[0.1, 0.0, 0.0], [0.3, 0.0, 0.0]])
    assert abs(out[1, 0].item() - 0.1) < 1e-15


def test_typecheck():
    """Wrong shapes and types raise."""
    with pytest.raises((TypeCheckError, BeartypeCallHintParamViolation)):
        center([[0, 0], [1, 1]])

    with pytest.raises((TypeCheckError, BeartypeCallHintParamViolation)):
        center("points")

    with pytest.raises(ValueError, match="Complex"):
        center(torch.zeros(2, 3, dtype=torch.complex64))


def test_assembly_environment_variable(monkeypatch):
    """The default assembly method can be set from the environment."""
    monkeypatch.setenv("SKARAP_ASSEMBLY", "normal_equations")
    importlib.reload(skarap.globals)
    assert skarap.globals.default_assembly == "normal_equations"

    monkeypatch.setenv("SKARAP_ASSEMBLY", "qr")
    with pytest.warns(UserWarning, match="Unknown assembly method"):
        importlib.reload(skarap.globals)
    assert skarap.globals.default_assembly == "direct_gradient"

    monkeypatch.delenv("SKARAP_ASSEMBLY")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        importlib.reload(skarap.globals)
    assert skarap.globals.default_assembly == "direct_gradient"
