"""Rasterized tape-winding simulator.

Projects the taping machine's axes (shell spin, arm angle, rim rotation, and
the offset across the tape width) onto the shell's layermap and counts how many
tape layers cover every cell.

Architecture:
    - Chuck contact ring stamped into the scratch grid as a reference marker
    - Per scheduled angle: rim advanced in fixed angular steps, every step ×
      tape-offset sample projected to a cell (vectorised as (steps, offsets)
      cell matrices over fixed-size batches of rim steps)
    - Samples mark the scratch grid (coverage, not counts) so overlapping
      swaths within one rim rotation add a single layer
    - Each full rim turn folds the scratch grid into the layermap and clears it
    - Rim angle remainder carried into the next angle; shell spin never reset
    - Scratch is kept across angle changes: a partial rotation completes under
      the next arm angle

Invariants:
    - Layermap/scratch are uint16, zeroed at the start of every call
    - Marker ring cells are never written by tape; they read MARKER_VALUE
    - Deterministic: identical inputs give bit-identical layermaps
    - Coverage of an unfinished final rotation is discarded

Usage:
    from shell_taping.taping_simulator import ShellSimulation

    simulator = ShellSimulation(sim_cfg)
    layermap = simulator.simulate_taping(shell_cfg)
    error = simulator.compute_layermap_error(target_layers=4, layermap=layermap)
"""

import logging
import math
from typing import Optional

import numpy as np

from ..utils import geometry, metrics
from ..utils.validators import ShellConfig, SimulationConfig

logger = logging.getLogger(__name__)

MARKER_VALUE = 3

LAYERMAP_DTYPE = np.uint16

# Tolerance for turn/step counting on accumulated radians
_EPS = 1e-9

# Rim steps projected per batch; bounds the (steps, offsets, 3, 3) rotation stack
_CHUNK_STEPS = 256


def _turn_count(rotation: np.ndarray) -> np.ndarray:
    return np.floor(rotation / geometry.TWO_PI + _EPS).astype(np.int64)


class ShellSimulation:
    """Taping simulator bound to one raster configuration.

    A single instance is not thread-safe when callers pass shared buffers;
    each fitness worker owns its own instance and buffers.

    Attributes
    ----------
    sim_cfg : SimulationConfig
        Raster settings
    size : int
        Layermap width/height in cells
    step : float
        Angular raster step in radians, ``2π / (size · mapFillPrecisionMult)``
    """

    def __init__(self, sim_cfg: SimulationConfig):
        self.sim_cfg = sim_cfg
        self.size = sim_cfg.layermap_size
        self.step = sim_cfg.step

    def allocate_buffers(self):
        """Return a zeroed (layermap, scratch) pair sized for this raster."""
        cells = self.size * self.size
        return np.zeros(cells, dtype=LAYERMAP_DTYPE), np.zeros(cells, dtype=LAYERMAP_DTYPE)

    def chuck_ring_cells(self, shell_cfg: ShellConfig) -> np.ndarray:
        """Unique cells of the chuck contact circle, sampled every raster step."""
        count = int(math.ceil(geometry.TWO_PI / self.step - _EPS))
        spins = self.step * np.arange(count)
        uv = geometry.shell_chuck_to_uv(shell_cfg.chuck_angle_radians, spins)
        return np.unique(geometry.uv_to_cell(uv, self.size))

    def tape_offsets(self, shell_cfg: ShellConfig) -> np.ndarray:
        """Offsets across the tape, ``-w/2, -w/2 + step, …`` up to ``+w/2``."""
        half = shell_cfg.tape_width_radians / 2.0
        count = int(math.floor(2.0 * half / self.step + _EPS)) + 1
        return -half + self.step * np.arange(count)

    def simulate_taping(
        self,
        shell_cfg: ShellConfig,
        layermap: Optional[np.ndarray] = None,
        scratch: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Simulate a full taping schedule.

        Parameters
        ----------
        shell_cfg : ShellConfig
            Schedule to rasterize
        layermap : np.ndarray, optional
            Output buffer, uint16 of length size²; allocated when None
        scratch : np.ndarray, optional
            Per-rotation coverage buffer, same layout; allocated when None

        Returns
        -------
        np.ndarray
            The layermap (flat, row-major, uint16); the same object as
            ``layermap`` when one was passed in

        Notes
        -----
        Both buffers are zeroed first, so they may be reused across calls.
        Layer counts wrap on uint16 overflow.
        """
        if layermap is None or scratch is None:
            fresh_layermap, fresh_scratch = self.allocate_buffers()
            layermap = fresh_layermap if layermap is None else layermap
            scratch = fresh_scratch if scratch is None else scratch
        layermap.fill(0)
        scratch.fill(0)

        step = self.step
        offsets = self.tape_offsets(shell_cfg)

        ring = self.chuck_ring_cells(shell_cfg)
        scratch[ring] = MARKER_VALUE
        tape_allowed = np.ones(layermap.shape[0], dtype=bool)
        tape_allowed[ring] = False

        rim_rotation = 0.0
        shell_rotation = 0.0
        folds = 0

        for angle_index in range(shell_cfg.num_angles):
            arm_rotation = math.radians(shell_cfg.shell_arm_angles[angle_index])
            speed = shell_cfg.shell_stepper_speed[angle_index]
            limit = geometry.TWO_PI * shell_cfg.rim_rotations_until_next_angle[angle_index]

            steps = max(0, int(math.ceil((limit - rim_rotation) / step - _EPS)))
            angle_folds = 0
            for first in range(0, steps, _CHUNK_STEPS):
                k = np.arange(first, min(first + _CHUNK_STEPS, steps))
                rims = rim_rotation + step * k
                shells = shell_rotation + step * speed * k

                uv = geometry.shell_to_uv(
                    rims[:, None], arm_rotation, offsets[None, :], shells[:, None]
                )
                cells = geometry.uv_to_cell(uv, self.size)

                # Fold after the step whose advance crosses a full rim turn
                fold_at = np.nonzero(_turn_count(rims + step) > _turn_count(rims))[0]

                start = 0
                for k_fold in fold_at:
                    self._deposit(scratch, cells[start:k_fold + 1], tape_allowed)
                    layermap += scratch
                    scratch.fill(0)
                    start = k_fold + 1
                self._deposit(scratch, cells[start:], tape_allowed)
                angle_folds += len(fold_at)
            folds += angle_folds

            logger.debug(
                f"Angle {angle_index}: arm={shell_cfg.shell_arm_angles[angle_index]:.2f}°, "
                f"speed={speed:.4f}, steps={steps}, folds={angle_folds}"
            )

            rim_end = rim_rotation + step * steps
            rim_rotation = max(0.0, rim_end - step * math.floor(rim_end / step + _EPS))
            shell_rotation += step * speed * steps

        # The ring is folded with the first completed rotation; restate it for
        # schedules that never complete one
        layermap[ring] = MARKER_VALUE

        logger.debug(f"Simulation finished: {shell_cfg.num_angles} angles, {folds} folds")
        return layermap

    @staticmethod
    def _deposit(scratch: np.ndarray, cells: np.ndarray, tape_allowed: np.ndarray) -> None:
        flat = cells.ravel()
        scratch[flat[tape_allowed[flat]]] = 1

    def compute_layermap_error(self, target_layers: int, layermap: np.ndarray) -> float:
        """Score a layermap against ``target_layers`` (see metrics.layermap_error)."""
        return metrics.layermap_error(self.sim_cfg, target_layers, layermap)


def simulate_taping(shell_cfg: ShellConfig, sim_cfg: SimulationConfig) -> np.ndarray:
    """Simulate a schedule into fresh buffers and return the layermap."""
    return ShellSimulation(sim_cfg).simulate_taping(shell_cfg)
