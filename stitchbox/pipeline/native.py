"""OpenCV native stitcher wrapper.

Thin layer over ``cv2.Stitcher``: feature detection, pairwise matching,
camera-parameter estimation, bundle adjustment, warping and multi-band
blending all happen inside OpenCV. This module only chooses the mode,
applies optional tuning, and reports the native status code.

Notes:
- PANORAMA assumes a rotating camera (spherical warp, perspective model).
- SCANS assumes a flat subject photographed from different positions
  (affine model, plane warp).
- A ``cv2.error`` raised by the native call is reported as
  ``NATIVE_EXCEPTION``, which the adapter classifies as an unknown failure.
"""

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np
from loguru import logger

from stitchbox.pipeline.models import StitchMode
from stitchbox.pipeline.stitcher import EngineStatus, StitchingEngine

NATIVE_EXCEPTION = -1

_CV_MODES = {
    StitchMode.PANORAMA: cv2.Stitcher_PANORAMA,
    StitchMode.SCANS: cv2.Stitcher_SCANS,
}


class OpenCVStitcher(StitchingEngine):
    name = "opencv"

    def __init__(
        self,
        registration_resol: Optional[float] = None,
        confidence_thresh: Optional[float] = None,
        wave_correction: Optional[bool] = None,
    ):
        self.registration_resol = registration_resol
        self.confidence_thresh = confidence_thresh
        self.wave_correction = wave_correction

    def _create(self, mode: StitchMode):
        stitcher = cv2.Stitcher_create(_CV_MODES[mode])
        if self.registration_resol is not None:
            stitcher.setRegistrationResol(self.registration_resol)
        if self.confidence_thresh is not None:
            stitcher.setPanoConfidenceThresh(self.confidence_thresh)
        if self.wave_correction is not None:
            stitcher.setWaveCorrection(self.wave_correction)
        return stitcher

    def stitch(self, images: Sequence[np.ndarray], mode: StitchMode) -> Tuple[int, Optional[np.ndarray]]:
        if not images:
            return EngineStatus.ERR_NEED_MORE_IMGS, None

        stitcher = self._create(mode)
        logger.info(f"Stitching {len(images)} images (mode={mode.value})")

        try:
            status, pano = stitcher.stitch(list(images))
        except cv2.error as e:
            logger.error(f"cv2.Stitcher raised: {e}")
            return NATIVE_EXCEPTION, None

        if status == cv2.Stitcher_OK and (pano is None or pano.size == 0):
            logger.error("cv2.Stitcher returned OK but the image is empty")
            return NATIVE_EXCEPTION, None

        logger.debug(f"cv2.Stitcher returned status {status}")
        return status, pano
