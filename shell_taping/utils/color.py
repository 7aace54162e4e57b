"""Layermap → image conversions for the direct simulation outputs.

Provides:
    - layermap_to_grey(): 8-bit greyscale, one grey level per layer (clamped at 255)
    - layermap_to_heatmap(): RGBA false-colour visitation density

Used by:
    - scripts/simulate.py: ``layermap.png`` and ``heatmap.png``

Heatmap:
    - Every layer of every cell splats a radius-1 cone stamp (1 at the centre,
      falling linearly to 0 at distance 2) into a density map
    - Density is normalised by its maximum and colour-mapped with OpenCV
    - Cells with zero density are fully transparent

Outputs are uint8 numpy arrays ready for fs.atomic_save_image.
"""

import cv2
import numpy as np

HEATMAP_STAMP_RADIUS = 1
HEATMAP_COLORMAP = cv2.COLORMAP_TURBO


def _as_grid(layermap: np.ndarray, size: int) -> np.ndarray:
    return np.asarray(layermap).reshape(size, size)


def layermap_to_grey(layermap: np.ndarray, size: int) -> np.ndarray:
    """Clamp layer counts to [0, 255] as a (size, size) uint8 image."""
    return np.minimum(_as_grid(layermap, size), 255).astype(np.uint8)


def cone_stamp(radius: int = HEATMAP_STAMP_RADIUS) -> np.ndarray:
    """Square (2r+1)² stamp with value ``max(0, 1 − d / (r + 1))``."""
    coords = np.arange(-radius, radius + 1, dtype=np.float32)
    dist = np.sqrt(coords[None, :] ** 2 + coords[:, None] ** 2)
    return np.clip(1.0 - dist / float(radius + 1), 0.0, None).astype(np.float32)


def layermap_to_heatmap(
    layermap: np.ndarray,
    size: int,
    radius: int = HEATMAP_STAMP_RADIUS,
    colormap: int = HEATMAP_COLORMAP,
) -> np.ndarray:
    """Render visitation density as a (size, size, 4) RGBA uint8 image.

    Parameters
    ----------
    layermap : np.ndarray
        Layer counts, flat (size²,) or (size, size)
    size : int
        Layermap width/height
    radius : int
        Stamp radius in cells, default 1
    colormap : int
        OpenCV colormap id, default TURBO

    Returns
    -------
    np.ndarray
        RGBA image; alpha 0 where nothing was deposited
    """
    counts = _as_grid(layermap, size).astype(np.float32)
    density = cv2.filter2D(counts, -1, cone_stamp(radius), borderType=cv2.BORDER_CONSTANT)

    peak = float(density.max())
    if peak <= 0.0:
        return np.zeros((size, size, 4), dtype=np.uint8)

    levels = np.round(density / peak * 255.0).astype(np.uint8)
    bgr = cv2.applyColorMap(levels, colormap)
    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    alpha = np.where(density > 0.0, 255, 0).astype(np.uint8)
    return np.dstack([rgb, alpha])
