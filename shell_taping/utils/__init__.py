"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Worker pool & partitioning (compute)
    - Layermap imaging (color)
    - Projection math (geometry)
    - Atomic I/O (fs)
    - Layermap error metric (metrics)
    - Profiling (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (taping_simulator, evolution).

Convenience imports:
    from shell_taping.utils import fs, compute, geometry, validators
    from shell_taping.utils.logging_config import setup_logging, get_logger
"""

# Re-export commonly used modules for convenience
from . import color
from . import compute
from . import fs
from . import geometry
from . import logging_config
from . import metrics
from . import profiler
from . import validators

# Common functions for direct import
from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'compute',
    'fs',
    'geometry',
    'logging_config',
    'metrics',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
