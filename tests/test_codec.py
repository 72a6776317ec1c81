import cv2
import numpy as np
import pytest

from stitchbox.errors import DecodeError, WorkspaceError
from stitchbox.pipeline.codec import decode, encode


def test_decode_color_and_gray(write_image, scene):
    color = decode(write_image(scene[:30, :40]))
    assert color.shape == (30, 40, 3)

    gray = decode(write_image(cv2.cvtColor(scene[:30, :40], cv2.COLOR_BGR2GRAY)))
    assert gray.shape == (30, 40)


def test_decode_drops_alpha(write_image, scene):
    rgba = cv2.cvtColor(scene[:30, :40], cv2.COLOR_BGR2BGRA)
    assert decode(write_image(rgba)).shape == (30, 40, 3)


def test_decode_rejects_corrupt_and_missing(tmp_path):
    corrupt = tmp_path / "corrupt.jpg"
    corrupt.write_bytes(b"definitely not an image")

    with pytest.raises(DecodeError):
        decode(corrupt)
    with pytest.raises(DecodeError):
        decode(tmp_path / "missing.png")


def test_encode_round_trips_losslessly(tmp_path, scene):
    path = encode(scene[:20, :20], tmp_path / "out.png")
    assert np.array_equal(cv2.imread(str(path)), scene[:20, :20])


def test_encode_failures_are_workspace_errors(tmp_path, scene):
    with pytest.raises(WorkspaceError):
        encode(scene[:20, :20], tmp_path / "no" / "such" / "dir" / "out.png")
    with pytest.raises(WorkspaceError):
        encode(scene[:20, :20], tmp_path / "out.unknownext")
    with pytest.raises(WorkspaceError):
        encode(np.zeros((0, 0, 3), np.uint8), tmp_path / "empty.png")
