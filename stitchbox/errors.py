"""
Error taxonomy for the stitching pipeline.

Every stage raises one of these; the request runner turns them into a
``Failure(kind, message)`` so nothing escapes unclassified.
"""

from enum import Enum


class ErrorKind(str, Enum):
    DECODE = "decode"
    WORKSPACE = "workspace"
    NEED_MORE_IMAGES = "need_more_images"
    HOMOGRAPHY_ESTIMATION_FAILED = "homography_estimation_failed"
    CAMERA_PARAMS_ADJUST_FAILED = "camera_params_adjust_failed"
    UNKNOWN = "unknown"
    UNEXPECTED = "unexpected"

    @property
    def is_engine_error(self) -> bool:
        return self in _ENGINE_KINDS


class EngineErrorCode(Enum):
    """Closed set of engine failures, with the native status name used in messages."""

    NEED_MORE_IMAGES = "ERR_NEED_MORE_IMGS"
    HOMOGRAPHY_ESTIMATION_FAILED = "ERR_HOMOGRAPHY_EST_FAIL"
    CAMERA_PARAMS_ADJUST_FAILED = "ERR_CAMERA_PARAMS_ADJUST_FAIL"
    UNKNOWN = "UNKNOWN"

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind[self.name]


_ENGINE_KINDS = frozenset(code.kind for code in EngineErrorCode)


class StitchError(Exception):
    """Base class for classified pipeline errors."""

    kind = ErrorKind.UNEXPECTED


class DecodeError(StitchError):
    """An input reference could not be read as an image."""

    kind = ErrorKind.DECODE


class WorkspaceError(StitchError):
    """Temporary-file or result-file I/O failure."""

    kind = ErrorKind.WORKSPACE


class EngineError(StitchError):
    """The stitching engine could not produce a composite."""

    def __init__(self, code: EngineErrorCode, status: int = None):
        self.code = code
        self.status = status
        if code is EngineErrorCode.UNKNOWN and status is not None:
            message = f"Can't stitch images: {code.value} (status {status})"
        else:
            message = f"Can't stitch images: {code.value}"
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        return self.code.kind


class UnexpectedError(StitchError):
    """Anything else raised while orchestrating a request."""

    kind = ErrorKind.UNEXPECTED


class StitchCancelled(Exception):
    """
    Raised inside a superseded request to stop it between stages.

    Not part of the taxonomy: a cancelled request is discarded, never delivered.
    """
