"""
Elementary rotations of magnetization vectors.

Rotations are performed in a RIGHT-handed coordinate system
with CLOCKWISE rotation for angle > 0, consistently with the
precession sense of the Bloch equations::

          z
          |
          |
          |_ _ _ _ y
         /
        /
       x

Each function returns a new tensor built from the untouched input,
so input and output never share storage.
"""
__all__ = ["rotate", "rotx", "roty", "rotz", "vec_rot"]

import torch

from ._utils import cast, check_vector


def rotx(vector, angle):
    """
    Rotate a vector about the x axis.

    Parameters
    ----------
    vector : torch.Tensor
        Input vector of shape ``(..., 3)``.
    angle : float | torch.Tensor
        Rotation angle in ``[rad]`` of shape ``(...)``.

    Returns
    -------
    torch.Tensor
        Rotated vector of shape ``(..., 3)``.

    """
    vector, angle = cast(vector, angle)
    check_vector(vector, "vector")
    x, y, z = vector.unbind(-1)
    c, s = torch.cos(angle), torch.sin(angle)

    return torch.stack(torch.broadcast_tensors(x, y * c + z * s, -y * s + z * c), dim=-1)


def roty(vector, angle):
    """
    Rotate a vector about the y axis.

    See Also
    --------
    rotx

    """
    vector, angle = cast(vector, angle)
    check_vector(vector, "vector")
    x, y, z = vector.unbind(-1)
    c, s = torch.cos(angle), torch.sin(angle)

    return torch.stack(torch.broadcast_tensors(x * c - z * s, y, x * s + z * c), dim=-1)


def rotz(vector, angle):
    """
    Rotate a vector about the z axis.

    See Also
    --------
    rotx

    """
    vector, angle = cast(vector, angle)
    check_vector(vector, "vector")
    x, y, z = vector.unbind(-1)
    c, s = torch.cos(angle), torch.sin(angle)

    return torch.stack(torch.broadcast_tensors(x * c + y * s, -x * s + y * c, z), dim=-1)


_axes = {"x": rotx, "y": roty, "z": rotz, 0: rotx, 1: roty, 2: rotz}


def rotate(axis, vector, angle):
    """
    Rotate a vector about one of the Cartesian axes.

    Parameters
    ----------
    axis : str | int
        Rotation axis (``"x"``, ``"y"``, ``"z"`` or ``0``, ``1``, ``2``).
    vector : torch.Tensor
        Input vector of shape ``(..., 3)``.
    angle : float | torch.Tensor
        Rotation angle in ``[rad]``.

    Returns
    -------
    torch.Tensor
        Rotated vector of shape ``(..., 3)``.

    """
    try:
        func = _axes[axis]
    except (KeyError, TypeError):
        raise ValueError(f"Unknown rotation axis {axis!r} - valid axes are 'x', 'y', 'z'") from None

    return func(vector, angle)


def vec_rot(vector, omega):
    """
    Infinitesimal rotation of a vector by an angular velocity.

    Parameters
    ----------
    vector : torch.Tensor
        Input vector of shape ``(..., 3)``.
    omega : torch.Tensor
        Angular velocity vector of shape ``(..., 3)`` in ``[rad / s]``.

    Returns
    -------
    torch.Tensor
        Time derivative ``vector x omega`` of shape ``(..., 3)``.

    """
    vector, omega = cast(vector, omega)
    check_vector(vector, "vector")
    check_vector(omega, "omega")
    vector, omega = torch.broadcast_tensors(vector, omega)

    return torch.linalg.cross(vector, omega, dim=-1)
