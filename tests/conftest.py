import cv2
import pytest

from stitchbox.config import StitchConfig, WorkspaceConfig

from helpers import crop, make_scene


@pytest.fixture(scope="session")
def scene():
    return make_scene()


@pytest.fixture
def overlapping_pair(scene):
    """Two frames of the same wall with 30% overlap."""
    return crop(scene, 0), crop(scene, 448)


@pytest.fixture
def write_image(tmp_path):
    counter = iter(range(10_000))

    def _write(image, name=None):
        path = tmp_path / "inputs" / (name or f"img_{next(counter):03d}.png")
        path.parent.mkdir(parents=True, exist_ok=True)
        assert cv2.imwrite(str(path), image)
        return path

    return _write


@pytest.fixture
def work_root(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "out"


@pytest.fixture
def workspace_config(work_root, output_dir):
    return WorkspaceConfig(work_root=work_root, output_dir=output_dir)


@pytest.fixture
def stitch_config(workspace_config):
    return StitchConfig(workspace=workspace_config, preprocess_workers=2)
