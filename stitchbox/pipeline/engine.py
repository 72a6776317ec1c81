import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from stitchbox.errors import EngineError, EngineErrorCode, UnexpectedError
from stitchbox.pipeline.codec import encode
from stitchbox.pipeline.models import StitchMode
from stitchbox.pipeline.native import OpenCVStitcher
from stitchbox.pipeline.preprocess import channel_count
from stitchbox.pipeline.stitcher import EngineStatus, FeatureStitcher, StitchingEngine
from stitchbox.pipeline.workspace import Workspace

ENGINES = {
    OpenCVStitcher.name: OpenCVStitcher,
    FeatureStitcher.name: FeatureStitcher,
}

_ERROR_CODES = {
    EngineStatus.ERR_NEED_MORE_IMGS: EngineErrorCode.NEED_MORE_IMAGES,
    EngineStatus.ERR_HOMOGRAPHY_EST_FAIL: EngineErrorCode.HOMOGRAPHY_ESTIMATION_FAILED,
    EngineStatus.ERR_CAMERA_PARAMS_ADJUST_FAIL: EngineErrorCode.CAMERA_PARAMS_ADJUST_FAILED,
}


def create_engine(name: str, **options) -> StitchingEngine:
    """Instantiate a stitching engine by name ("opencv" or "feature")."""
    try:
        engine_cls = ENGINES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown stitching engine '{name}'. Available: {', '.join(sorted(ENGINES))}") from None
    return engine_cls(**options)


def classify_status(status: int) -> Optional[EngineErrorCode]:
    """Translate a native status into the closed error set. None means success."""
    if status == EngineStatus.OK:
        return None
    return _ERROR_CODES.get(status, EngineErrorCode.UNKNOWN)


class StitchingEngineAdapter:
    """
    Invokes a stitching engine and classifies its outcome.

    No retries: failures are almost always caused by the input set
    (too few images, no overlap), which only the caller can change.
    """

    def __init__(self, engine: StitchingEngine):
        self.log = logging.getLogger("StitchingEngineAdapter")
        self.engine = engine

    def stitch(self, images: Sequence[np.ndarray], mode: StitchMode) -> np.ndarray:
        """
        :return: the composite image
        :raises EngineError: the engine reported a failure status
        """
        for index, image in enumerate(images):
            if channel_count(image) != 3:
                raise UnexpectedError(
                    f"Image {index} has {channel_count(image)} channels; engine input must be 3-channel"
                )

        status, composite = self.engine.stitch(images, mode)
        code = classify_status(int(status))
        if code is not None:
            self.log.warning(f"Engine '{self.engine.name}' failed with status {int(status)} ({code.value})")
            raise EngineError(code, int(status))

        if composite is None:
            raise EngineError(EngineErrorCode.UNKNOWN, int(status))

        self.log.info(f"Engine '{self.engine.name}' produced {composite.shape[1]}x{composite.shape[0]} composite")
        return composite

    def save(self, composite: np.ndarray, workspace: Workspace) -> Path:
        """Write the composite into a new result slot of the workspace."""
        return encode(composite, workspace.create_result_slot())
