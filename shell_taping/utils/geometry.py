"""Projection math for the taping simulator.

Provides:
    - Axis rotation matrices (x, y, z) as broadcastable stacks
    - Direction → (u, v) projection onto the shell's equirectangular layermap
    - Composed machine-axis projections (shell spin, arm, rim, tape offset)
    - (u, v) → flat layermap cell index

Used by:
    - Taping simulator: every rim step × tape offset sample is projected here
    - Tests: independent reconstruction of expected band/ring cells

Frame conventions:
    - +Y is the shell pole (the "up" reference direction)
    - u = azimuth atan2(x, z) mapped from [-π, π] to [0, 1]
    - v = polar angle acos(y) mapped from [0, π] to [0, 1]
    - Layermap rows follow v, columns follow u

All functions are pure and vectorised over leading axes; scalars are accepted
anywhere an array is.
"""

from typing import Union

import numpy as np

TWO_PI = 2.0 * np.pi

ArrayLike = Union[float, np.ndarray]

_UP = np.array([0.0, 1.0, 0.0])


def saturate(x: ArrayLike) -> np.ndarray:
    """Clamp to [0, 1]."""
    return np.clip(x, 0.0, 1.0)


def dir_to_uv(dirs: np.ndarray) -> np.ndarray:
    """Project unit direction(s) to normalized layermap coordinates.

    Parameters
    ----------
    dirs : np.ndarray
        Unit vectors, shape (..., 3)

    Returns
    -------
    np.ndarray
        (u, v) in [0, 1]², shape (..., 2)

    Notes
    -----
    y is clipped to [-1, 1] before acos; composed rotations can overshoot the
    unit sphere by an ulp.
    """
    dirs = np.asarray(dirs, dtype=np.float64)
    azimuth = np.arctan2(dirs[..., 0], dirs[..., 2])
    polar = np.arccos(np.clip(dirs[..., 1], -1.0, 1.0))

    u = saturate((azimuth + np.pi) / TWO_PI)
    v = saturate(polar / np.pi)
    return np.stack([u, v], axis=-1)


def axis_rotation(angles: ArrayLike, axis: str) -> np.ndarray:
    """Right-handed rotation matrices about a principal axis.

    Parameters
    ----------
    angles : float or np.ndarray
        Rotation angle(s) in radians, any shape S
    axis : str
        'x', 'y' or 'z'

    Returns
    -------
    np.ndarray
        Rotation matrices, shape S + (3, 3)
    """
    angles = np.asarray(angles, dtype=np.float64)
    c = np.cos(angles)
    s = np.sin(angles)
    one = np.ones_like(angles)
    zero = np.zeros_like(angles)

    if axis == 'x':
        rows = [[one, zero, zero], [zero, c, -s], [zero, s, c]]
    elif axis == 'y':
        rows = [[c, zero, s], [zero, one, zero], [-s, zero, c]]
    elif axis == 'z':
        rows = [[c, -s, zero], [s, c, zero], [zero, zero, one]]
    else:
        raise ValueError(f"axis must be 'x', 'y' or 'z', got {axis!r}")

    return np.stack([np.stack(r, axis=-1) for r in rows], axis=-2)


def rotate_up(*rotations: np.ndarray) -> np.ndarray:
    """Apply composed rotations (outermost first) to the up vector.

    ``rotate_up(A, B, C)`` returns ``A @ B @ C @ (0, 1, 0)`` with the matrix
    stacks broadcast against each other.
    """
    composed = rotations[0]
    for rotation in rotations[1:]:
        composed = composed @ rotation
    return composed @ _UP


def shell_to_uv(
    rim_rotation: ArrayLike,
    arm_rotation: ArrayLike,
    tape_rotation: ArrayLike,
    shell_rotation: ArrayLike,
) -> np.ndarray:
    """Project a tape sample to layermap (u, v).

    Parameters
    ----------
    rim_rotation : float or np.ndarray
        Rim angle in radians (about the forward/x axis)
    arm_rotation : float or np.ndarray
        Arm angle in radians (about the lateral/z axis), 0 = straight up/down
    tape_rotation : float or np.ndarray
        Offset across the tape width in radians (about the lateral/z axis)
    shell_rotation : float or np.ndarray
        Accumulated shell spin in radians (about the vertical/y axis)

    Returns
    -------
    np.ndarray
        (u, v), shape broadcast(inputs) + (2,)

    Notes
    -----
    Composition order is fixed: shell spin outermost, then arm, rim, and the
    tape offset innermost.
    """
    dirs = rotate_up(
        axis_rotation(shell_rotation, 'y'),
        axis_rotation(arm_rotation, 'z'),
        axis_rotation(rim_rotation, 'x'),
        axis_rotation(tape_rotation, 'z'),
    )
    return dir_to_uv(dirs)


def shell_chuck_to_uv(chuck_rotation: float, spin: ArrayLike) -> np.ndarray:
    """Project points of the chuck contact ring to (u, v).

    ``chuck_rotation`` tilts the up vector away from the pole by the chuck
    contact angle, ``spin`` sweeps it around the vertical axis.
    """
    dirs = rotate_up(
        axis_rotation(spin, 'y'),
        axis_rotation(chuck_rotation, 'x'),
    )
    return dir_to_uv(dirs)


def uv_to_cell(uv: np.ndarray, size: int) -> np.ndarray:
    """Map (u, v) to flat row-major layermap indices.

    Parameters
    ----------
    uv : np.ndarray
        Coordinates in [0, 1]², shape (..., 2)
    size : int
        Layermap width/height in cells

    Returns
    -------
    np.ndarray
        int64 flat indices ``floor(v·(size-1))·size + floor(u·(size-1))``
    """
    scaled = np.floor(np.asarray(uv) * float(size - 1)).astype(np.int64)
    return scaled[..., 1] * size + scaled[..., 0]
