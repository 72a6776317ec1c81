"""
stitchbox: turns overlapping photographs into one panorama or flattened scan.

Typical use:

    coordinator = StitchCoordinator.from_config(load_config(), on_result=show)
    coordinator.submit(StitchRequest(["a.jpg", "b.jpg"], StitchMode.PANORAMA))
"""

from .config import SharpenConfig, StitchConfig, WorkspaceConfig, load_config
from .errors import (
    DecodeError,
    EngineError,
    EngineErrorCode,
    ErrorKind,
    StitchError,
    UnexpectedError,
    WorkspaceError,
)
from .pipeline import (
    Failure,
    StitchCoordinator,
    StitchMode,
    StitchRequest,
    StitchResult,
    Success,
)

__version__ = "0.1.0"

__all__ = [
    "SharpenConfig",
    "StitchConfig",
    "WorkspaceConfig",
    "load_config",
    "DecodeError",
    "EngineError",
    "EngineErrorCode",
    "ErrorKind",
    "StitchError",
    "UnexpectedError",
    "WorkspaceError",
    "Failure",
    "StitchCoordinator",
    "StitchMode",
    "StitchRequest",
    "StitchResult",
    "Success",
]
