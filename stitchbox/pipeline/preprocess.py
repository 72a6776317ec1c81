import cv2
import numpy as np
import logging
from concurrent import futures
from typing import List, Optional, Sequence

from stitchbox.config import SharpenConfig


def channel_count(image: np.ndarray) -> int:
    """Number of channels, treating (h, w) and (h, w, 1) both as grayscale."""
    if image.ndim == 2:
        return 1
    return image.shape[2]


def sharpen(image: np.ndarray, config: Optional[SharpenConfig] = None) -> np.ndarray:
    """
    Unsharp-mask a single image and normalize it to 3 channels.

    output = original_weight * original + residual_weight * (original - blur) + bias,
    saturated to the image's value range. The blur kernel is derived from sigma.
    Width and height are preserved; grayscale input is replicated to BGR.
    """
    cfg = config or SharpenConfig()

    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    blurred = cv2.GaussianBlur(image, (0, 0), cfg.sigma)
    residual = cv2.subtract(image, blurred)
    sharpened = cv2.addWeighted(
        image, cfg.original_weight,
        residual, cfg.residual_weight,
        cfg.bias,
    )

    if channel_count(sharpened) == 1:
        sharpened = cv2.cvtColor(sharpened, cv2.COLOR_GRAY2BGR)

    return sharpened


class ImagePreprocessor:
    """
    Sharpens every image of a request before it reaches the stitching engine.

    Images of one request have no data dependency on each other, so they are
    processed on a small thread pool (OpenCV releases the GIL). Order is kept.
    """

    def __init__(self, config: Optional[SharpenConfig] = None, max_workers: int = 4):
        self.log = logging.getLogger("ImagePreprocessor")
        self.config = config or SharpenConfig()
        self.max_workers = max_workers

    def sharpen(self, image: np.ndarray) -> np.ndarray:
        return sharpen(image, self.config)

    def sharpen_all(self, images: Sequence[np.ndarray]) -> List[np.ndarray]:
        if len(images) <= 1 or self.max_workers == 1:
            return [self.sharpen(img) for img in images]

        workers = min(self.max_workers, len(images))
        with futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sharpen") as pool:
            result = list(pool.map(self.sharpen, images))

        self.log.debug(f"Sharpened {len(result)} images on {workers} workers")
        return result
