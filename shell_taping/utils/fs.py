"""Atomic file output and config file reading.

Provides:
    - atomic_write_bytes / atomic_write_text: tmp file → fsync → rename
    - atomic_json_dump: serialized configs (best-config.json)
    - atomic_save_image: layermap.png / heatmap.png through PIL
    - load_json / load_yaml / load_config: config readers, suffix dispatch

The best-result artifact is rewritten after every generation of a search, so
an external viewer polling ``best-config.json`` must never observe a half
written file. Every writer goes through a same-directory temporary file and
a rename, and reports failure as RuntimeError naming the target.

Usage:
    from shell_taping.utils import fs
    fs.atomic_json_dump(shell_config_to_dict(best.config), out_dir / "best-config.json")
    fs.atomic_save_image(grey, out_dir / "layermap.png")
    data = fs.load_config("configs/sim-config.json")
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create ``p`` (and parents) if missing and return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _replace_or_cleanup(tmp_path: Path, path: Path, write) -> None:
    try:
        ensure_dir(path.parent)
        write(tmp_path)
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_bytes(path: PathLike, data: bytes, tmp_suffix: str = ".tmp") -> None:
    """Replace ``path`` with ``data`` in one rename.

    Parameters
    ----------
    path : str or Path
        Target file; parent directories are created
    data : bytes
        Full file content
    tmp_suffix : str
        Appended to the target name for the temporary file

    Raises
    ------
    RuntimeError
        If the directory cannot be created or the file cannot be written
    """
    path = Path(path)

    def write(tmp_path: Path) -> None:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    _replace_or_cleanup(path.with_suffix(path.suffix + tmp_suffix), path, write)


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, text.encode(encoding))


def atomic_json_dump(obj: Any, path: PathLike, indent: int = 4) -> None:
    """Write ``obj`` as JSON; 4-space indent matches the taping machine tooling."""
    atomic_write_text(path, json.dumps(obj, indent=indent) + "\n")


def atomic_save_image(
    img: np.ndarray,
    path: PathLike,
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save a layermap rendering atomically.

    Parameters
    ----------
    img : np.ndarray
        (H, W) or (H, W, 1) greyscale, (H, W, 3) RGB or (H, W, 4) RGBA;
        non-uint8 input is clipped to [0, 255]
    path : str or Path
        Target file; the suffix selects the format
    pil_kwargs : dict, optional
        Extra arguments for ``PIL.Image.save``

    Raises
    ------
    RuntimeError
        If the image cannot be written
    """
    path = Path(path)
    pil_kwargs = pil_kwargs or {}

    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img[:, :, 0]
    pil_img = Image.fromarray(img)

    # Keep the real suffix last so PIL can infer the format
    tmp_path = path.with_name(path.stem + ".tmp" + path.suffix)
    _replace_or_cleanup(tmp_path, path, lambda p: pil_img.save(p, **pil_kwargs))


def load_json(path: PathLike) -> Any:
    """Parse a JSON file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    json.JSONDecodeError
        If parsing fails; the message names the file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise json.JSONDecodeError(f"Failed to parse JSON file {path}: {e.msg}", e.doc, e.pos) from e


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file with ``safe_load``.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    yaml.YAMLError
        If parsing fails; the message names the file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def load_config(path: PathLike) -> Any:
    """Read a config file: ``.yaml``/``.yml`` as YAML, anything else as JSON."""
    path = Path(path)
    if path.suffix.lower() in ('.yaml', '.yml'):
        return load_yaml(path)
    return load_json(path)
