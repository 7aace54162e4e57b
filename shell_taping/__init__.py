"""Shell Taping: tape-winding simulation and schedule search for hemispherical shells.

This package rasterizes a tape-winding process onto a per-pixel layer-count map
and searches arm-angle/stepper-speed schedules with a parallel evolutionary
optimizer.

Architecture layers (strict one-way dependency):
    scripts/ → shell_taping/{evolution,taping_simulator}/ → shell_taping/utils/

Key invariants:
    - Angles in degrees at the config boundary, radians inside the simulator
    - Layermaps are flat uint16 arrays of layermap_size² cells, row-major (v, u)
    - Lower fitness is better; 0 means "not evaluated yet"
    - JSON configs on disk use the camelCase keys of the taping machine tooling
"""

__version__ = "1.0.0"
