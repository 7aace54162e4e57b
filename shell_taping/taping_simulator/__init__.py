"""Tape-winding simulator for hemispherical shells.

Rasterizes a taping schedule (arm angles, stepper speeds, rim rotations per
application) onto an N × N layer-count grid.

Modules:
    - shell_simulation: ShellSimulation (reusable buffers) and simulate_taping()

Invariants:
    - Buffers are uint16 and zeroed at the start of every simulation
    - One layer per cell per full rim rotation
    - Chuck marker ring cells hold MARKER_VALUE, never tape counts

Used by:
    - scripts/simulate.py: direct simulation mode (layermap/heatmap PNGs)
    - evolution.fitness: one simulator per fitness worker
"""

from .shell_simulation import MARKER_VALUE, ShellSimulation, simulate_taping

__all__ = ['MARKER_VALUE', 'ShellSimulation', 'simulate_taping']
