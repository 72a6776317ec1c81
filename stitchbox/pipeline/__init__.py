"""
Pipeline package for the image stitcher.

This package contains the components responsible for:
- Sharpening and normalizing each input image (preprocess)
- Materializing inputs and owning the request's temporary files (workspace)
- Running a stitching engine and classifying its outcome (stitcher, native, engine)
- Running one request end to end (runner)
- Single-flight request coordination and result delivery (controller, delivery)
"""

from .models import StitchMode, StitchRequest, Success, Failure, StitchResult
from .preprocess import ImagePreprocessor, sharpen
from .workspace import Workspace, WorkspaceManager
from .stitcher import EngineStatus, StitchingEngine, FeatureStitcher
from .native import OpenCVStitcher
from .engine import StitchingEngineAdapter, create_engine
from .runner import RequestRunner
from .delivery import CompletionContext, QueueCompletionContext, ThreadCompletionContext
from .controller import StitchCoordinator


__all__ = [
    "StitchMode",
    "StitchRequest",
    "Success",
    "Failure",
    "StitchResult",
    "ImagePreprocessor",
    "sharpen",
    "Workspace",
    "WorkspaceManager",
    "EngineStatus",
    "StitchingEngine",
    "FeatureStitcher",
    "OpenCVStitcher",
    "StitchingEngineAdapter",
    "create_engine",
    "RequestRunner",
    "CompletionContext",
    "QueueCompletionContext",
    "ThreadCompletionContext",
    "StitchCoordinator",
]
