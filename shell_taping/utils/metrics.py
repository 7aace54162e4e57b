"""Layermap scoring and diagnostics.

Provides:
    - layermap_error: fitness of a layermap against a uniform target layer count
    - layer_statistics: summary of deposited layers for logging

Used by:
    - Fitness evaluation: every population member is scored with layermap_error
    - CLI direct mode: ``-e <layers>`` error report and the run summary

Layermaps are flat or (size, size) arrays of unsigned layer counts, row-major
with rows following the shell's polar angle.
"""

import numpy as np

from .validators import SimulationConfig


def layermap_error(
    sim_cfg: SimulationConfig,
    target_layers: int,
    layermap: np.ndarray
) -> float:
    """Score a layermap against a uniform target (lower is better).

    Parameters
    ----------
    sim_cfg : SimulationConfig
        Raster settings (``layermap_size``, ``error_calc_y_axis_sweeps``)
    target_layers : int
        Desired layer count everywhere on the shell
    layermap : np.ndarray
        Layer counts, shape (size²,) or (size, size)

    Returns
    -------
    float
        Non-negative error

    Notes
    -----
    Columns ``0, s, 2s, …`` with ``s = size // sweeps`` are sampled top to
    bottom. Each cell contributes ``|target − L|⁴ + |L − L_above|⁴``, the cell
    above the first row being the cell itself. The sum is scaled by
    ``1 / size`` and then divided by the sweep count. Both terms weigh 1:1.
    """
    size = sim_cfg.layermap_size
    sweeps = sim_cfg.error_calc_y_axis_sweeps
    grid = np.asarray(layermap, dtype=np.float64).reshape(size, size)

    columns = grid[:, 0:size:size // sweeps]
    above = np.vstack([columns[:1], columns[:-1]])

    layer_error = np.abs(float(target_layers) - columns) ** 4
    smoothness_error = np.abs(columns - above) ** 4

    total = float(np.sum(layer_error + smoothness_error)) / float(size)
    return total / float(sweeps)


def layer_statistics(layermap: np.ndarray) -> dict:
    """Min/max/mean layer count over covered cells and the covered fraction."""
    layermap = np.asarray(layermap)
    covered = layermap[layermap > 0]
    if covered.size == 0:
        return {'covered_fraction': 0.0, 'min': 0, 'max': 0, 'mean': 0.0}
    return {
        'covered_fraction': float(covered.size) / float(layermap.size),
        'min': int(covered.min()),
        'max': int(covered.max()),
        'mean': float(covered.mean()),
    }
