import cv2
import numpy as np
import logging
from pathlib import Path

from stitchbox.errors import DecodeError, WorkspaceError

log = logging.getLogger("Codec")


def decode(path) -> np.ndarray:
    """
    Read an image file as 8-bit grayscale or BGR.

    Alpha is dropped so decoded images always have 1 or 3 channels.
    :raises DecodeError: unreadable or corrupt input.
    """
    path = Path(path)
    try:
        image = cv2.imread(str(path), cv2.IMREAD_ANYCOLOR)
    except cv2.error as e:
        raise DecodeError(f"Failed to read image: {path.name}: {e}") from e

    if image is None or image.size == 0:
        raise DecodeError(f"Failed to read image: {path.name}")

    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    log.debug(f"Decoded {path.name}: {image.shape[1]}x{image.shape[0]}")
    return image


def encode(image: np.ndarray, path) -> Path:
    """
    Write an image in the raster format implied by the file extension.

    :raises WorkspaceError: the file could not be written.
    """
    path = Path(path)
    if image is None or image.size == 0:
        raise WorkspaceError(f"Cannot write empty image to {path}")

    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as e:
        raise WorkspaceError(f"Failed to write output image to {path}: {e}") from e

    if not ok:
        raise WorkspaceError(f"Failed to write output image to {path}")

    log.info(f"Saved image to {path}")
    return path
