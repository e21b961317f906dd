"""Utils for Bloch simulation testing."""

import torch

import pytest

seed = 42
dtype = torch.float64


class Helpers:  # noqa
    @staticmethod
    def random_magnetization(device, *shape):  # noqa
        torch.manual_seed(seed)
        m = torch.rand(*shape, 3, dtype=dtype, device=device) - 0.5
        return m / torch.linalg.norm(m, dim=-1, keepdim=True)

    @staticmethod
    def tensor(value, device):  # noqa
        return torch.as_tensor(value, dtype=dtype, device=device)

    @staticmethod
    def finite_difference(func, x, eps=1e-6):  # noqa
        """Central difference of func with respect to scalar x."""
        return (func(x + eps) - func(x - eps)) / (2 * eps)


@pytest.fixture
def helpers():  #  noqa
    return Helpers
