import cv2
import numpy as np
import logging
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

from stitchbox.pipeline.models import StitchMode


class EngineStatus(IntEnum):
    """Native engine status codes. Values match OpenCV's cv2.Stitcher."""
    OK = 0
    ERR_NEED_MORE_IMGS = 1
    ERR_HOMOGRAPHY_EST_FAIL = 2
    ERR_CAMERA_PARAMS_ADJUST_FAIL = 3


class StitchingEngine(ABC):
    """
    Black-box stitching capability.

    Implementations receive BGR images in order and return the engine's native
    status code plus the composite (None unless the status is OK).
    """

    name = "engine"

    @abstractmethod
    def stitch(self, images: Sequence[np.ndarray], mode: StitchMode) -> Tuple[int, Optional[np.ndarray]]:
        raise NotImplementedError


class FeatureStitcher(StitchingEngine):
    """
    Mosaics frames taken sequentially using feature-based image stitching.

    Each frame is registered against the previous one, so inputs must be
    ordered along the sweep. PANORAMA estimates a full homography per pair,
    SCANS a partial affine transform (rotation, uniform scale, translation),
    which suits flat documents.
    """

    name = "feature"

    def __init__(
        self,
        detector: str = "ORB",
        min_matches: int = 10,
        min_inliers: int = 12,
        reproj_threshold: float = 5.0,
        max_canvas_ratio: float = 4.0,
    ):
        """
        detector: "ORB" or "SIFT"
        max_canvas_ratio: reject a layout whose canvas exceeds this multiple
                          of the summed input area (a degenerate transform).
        """
        self.log = logging.getLogger("FeatureStitcher")

        if detector.upper() == "SIFT":
            self.detector = cv2.SIFT_create()
            norm = cv2.NORM_L2
        else:
            # ORB is free, fast, and good for consistent exposures
            self.detector = cv2.ORB_create(nfeatures=2000)
            norm = cv2.NORM_HAMMING

        self.matcher = cv2.BFMatcher(norm, crossCheck=True)
        self.min_matches = min_matches
        self.min_inliers = min_inliers
        self.reproj_threshold = reproj_threshold
        self.max_canvas_ratio = max_canvas_ratio

        self.frames: List[np.ndarray] = []
        self.transforms: List[np.ndarray] = []

    def reset(self):
        """Remove all frames and restart the stitching session."""
        self.frames = []
        self.transforms = []

    def add_frame(self, frame: np.ndarray, mode: StitchMode = StitchMode.PANORAMA) -> EngineStatus:
        """
        Register a frame against the previous one.

        The first frame defines the reference plane and always succeeds.
        """
        if not self.frames:
            self.frames.append(frame)
            self.transforms.append(np.eye(3, dtype=np.float64))
            return EngineStatus.OK

        transform = self._estimate(self.frames[-1], frame, mode)
        if transform is None:
            return EngineStatus.ERR_HOMOGRAPHY_EST_FAIL

        # Cumulative transform = previous * pairwise
        self.transforms.append(self.transforms[-1] @ transform)
        self.frames.append(frame)
        return EngineStatus.OK

    def _estimate(self, prev_frame: np.ndarray, frame: np.ndarray, mode: StitchMode) -> Optional[np.ndarray]:
        prev_gray = cv2.cvtColor(prev_frame, cv2.COLOR_BGR2GRAY)
        frame_gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)

        kp1, des1 = self.detector.detectAndCompute(prev_gray, None)
        kp2, des2 = self.detector.detectAndCompute(frame_gray, None)

        if des1 is None or des2 is None:
            self.log.warning("Could not compute descriptors")
            return None

        matches = sorted(self.matcher.match(des1, des2), key=lambda m: m.distance)
        if len(matches) < self.min_matches:
            self.log.warning(f"Not enough matches ({len(matches)} < {self.min_matches})")
            return None

        src_pts = np.float32([kp1[m.queryIdx].pt for m in matches]).reshape(-1, 1, 2)
        dst_pts = np.float32([kp2[m.trainIdx].pt for m in matches]).reshape(-1, 1, 2)

        # Map the new frame onto the previous one
        if mode is StitchMode.SCANS:
            affine, mask = cv2.estimateAffinePartial2D(
                dst_pts, src_pts, method=cv2.RANSAC, ransacReprojThreshold=self.reproj_threshold
            )
            H = None if affine is None else np.vstack([affine, [0.0, 0.0, 1.0]])
        else:
            H, mask = cv2.findHomography(dst_pts, src_pts, cv2.RANSAC, self.reproj_threshold)

        if H is None:
            self.log.warning("Homography failed")
            return None

        inliers = int(mask.sum()) if mask is not None else 0
        if inliers < self.min_inliers:
            self.log.warning(f"Too few inliers ({inliers} < {self.min_inliers})")
            return None

        self.log.debug(f"Pair registered: {len(matches)} matches, {inliers} inliers")
        return H.astype(np.float64)

    def stitch(self, images: Sequence[np.ndarray], mode: StitchMode) -> Tuple[int, Optional[np.ndarray]]:
        """
        Stitch a list of frames and return (status, mosaic).
        Resets, adds all frames, and builds.
        """
        self.reset()
        if len(images) < 2:
            return EngineStatus.ERR_NEED_MORE_IMGS, None

        for index, frame in enumerate(images):
            status = self.add_frame(frame, mode)
            if status != EngineStatus.OK:
                self.log.error(f"Frame {index} could not be registered")
                return status, None

        mosaic = self.build()
        if mosaic is None:
            return EngineStatus.ERR_HOMOGRAPHY_EST_FAIL, None
        return EngineStatus.OK, mosaic

    def build(self) -> Optional[np.ndarray]:
        """
        Warp every registered frame onto a shared canvas.
        Returns None if there are no frames or the layout is degenerate.
        """
        if not self.frames:
            return None

        if len(self.frames) == 1:
            return self.frames[0]

        # Compute output bounds
        corners = []
        for frame, H in zip(self.frames, self.transforms):
            h, w = frame.shape[:2]
            pts = np.float32([[0, 0], [w, 0], [w, h], [0, h]]).reshape(-1, 1, 2)
            corners.append(cv2.perspectiveTransform(pts, H))

        corners = np.concatenate(corners, axis=0)
        xmin, ymin = np.floor(np.min(corners[:, 0, :], axis=0)).astype(int)
        xmax, ymax = np.ceil(np.max(corners[:, 0, :], axis=0)).astype(int)

        width = int(xmax - xmin)
        height = int(ymax - ymin)
        input_area = sum(f.shape[0] * f.shape[1] for f in self.frames)
        if width <= 0 or height <= 0 or width * height > self.max_canvas_ratio * input_area:
            self.log.error(f"Degenerate canvas {width}x{height}")
            return None

        # Translation to avoid negative indices
        translate = np.array([[1, 0, -xmin],
                              [0, 1, -ymin],
                              [0, 0, 1]], dtype=np.float64)

        mosaic = np.zeros((height, width, 3), dtype=np.uint8)

        for frame, H in zip(self.frames, self.transforms):
            warped = cv2.warpPerspective(frame, translate @ H, (width, height))
            mask = (warped.sum(axis=2) > 0)
            mosaic[mask] = warped[mask]

        self.log.info(f"Mosaic built from {len(self.frames)} frames: {width}x{height}")
        return mosaic
