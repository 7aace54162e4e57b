"""Test atomic filesystem operations.

Tests for shell_taping.utils.fs:
    - Atomic writes leave no temporary files behind
    - JSON output uses 4-space indentation
    - load_config reads .yaml files preserving structure and key order
    - PNG output readable by PIL with the expected mode and shape
    - Failures surface as RuntimeError and clean up the tmp file
    - load_json / load_config error reporting

Run:
    pytest tests/test_fs.py -v
"""

import json

import numpy as np
import pytest
import yaml
from PIL import Image

from shell_taping.utils import fs


def test_ensure_dir(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    assert fs.ensure_dir(target) == target
    assert target.is_dir()
    # Second call is a no-op
    fs.ensure_dir(target)


def test_atomic_write_bytes(tmp_path):
    path = tmp_path / "out" / "data.bin"
    fs.atomic_write_bytes(path, b"first")
    fs.atomic_write_bytes(path, b"second")

    assert path.read_bytes() == b"second"
    assert sorted(p.name for p in path.parent.iterdir()) == ["data.bin"]


def test_atomic_write_failure_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(RuntimeError, match="atomically"):
        fs.atomic_write_text(blocker / "child.txt", "data")


def test_atomic_json_dump_indent(tmp_path):
    path = tmp_path / "best-config.json"
    fs.atomic_json_dump({"numAngles": 2, "shellArmAngles": [10.0, 20.0]}, path)

    text = path.read_text()
    assert text.startswith('{\n    "numAngles": 2,')
    assert json.loads(text) == {"numAngles": 2, "shellArmAngles": [10.0, 20.0]}


def test_load_config_yaml(tmp_path):
    data = {"layermapSize": 16, "SearchConfig": {"numAngles": 1, "minShellArmAngles": [10.0]}}
    path = tmp_path / "sim.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False))

    loaded = fs.load_config(path)
    assert loaded == data
    assert list(loaded) == ["layermapSize", "SearchConfig"]


@pytest.mark.parametrize("shape,mode", [((6, 5), "L"), ((6, 5, 4), "RGBA"), ((6, 5, 1), "L")])
def test_atomic_save_image(tmp_path, shape, mode):
    img = (np.arange(np.prod(shape)) % 256).astype(np.uint8).reshape(shape)
    path = tmp_path / "layermap.png"
    fs.atomic_save_image(img, path)

    with Image.open(path) as loaded:
        assert loaded.mode == mode
        assert loaded.size == (5, 6)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["layermap.png"]


def test_atomic_save_image_clips_non_uint8(tmp_path):
    img = np.array([[-5.0, 300.0]])
    path = tmp_path / "clip.png"
    fs.atomic_save_image(img, path)
    with Image.open(path) as loaded:
        assert np.array(loaded).tolist() == [[0, 255]]


def test_load_json_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_json(tmp_path / "missing.json")


def test_load_json_malformed_names_path(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(json.JSONDecodeError, match="broken.json"):
        fs.load_json(path)


def test_load_config_dispatches_on_suffix(tmp_path):
    (tmp_path / "a.json").write_text('{"x": 1}')
    (tmp_path / "b.yml").write_text("x: 2\n")
    assert fs.load_config(tmp_path / "a.json") == {"x": 1}
    assert fs.load_config(tmp_path / "b.yml") == {"x": 2}
