import logging
import threading
from typing import Optional

from stitchbox.config import StitchConfig
from stitchbox.errors import ErrorKind, StitchCancelled, StitchError
from stitchbox.pipeline.codec import decode
from stitchbox.pipeline.engine import StitchingEngineAdapter, create_engine
from stitchbox.pipeline.models import Failure, StitchRequest, StitchResult, Success
from stitchbox.pipeline.preprocess import ImagePreprocessor
from stitchbox.pipeline.workspace import WorkspaceManager


class RequestRunner:
    """
    Runs one stitch request end to end, synchronously:

    resolve -> decode -> sharpen -> stitch -> cleanup

    Every classified or unexpected error becomes a Failure. Cleanup happens
    on every path before the result is returned. The only exception that
    leaves run() is StitchCancelled, for requests superseded mid-way.
    """

    def __init__(
        self,
        workspaces: WorkspaceManager,
        preprocessor: ImagePreprocessor,
        adapter: StitchingEngineAdapter,
    ):
        self.log = logging.getLogger("RequestRunner")
        self.workspaces = workspaces
        self.preprocessor = preprocessor
        self.adapter = adapter

    @classmethod
    def from_config(cls, config: Optional[StitchConfig] = None, engine=None) -> "RequestRunner":
        cfg = config or StitchConfig()
        engine = engine or create_engine(cfg.engine, **cfg.engine_options)
        return cls(
            workspaces=WorkspaceManager(cfg.workspace),
            preprocessor=ImagePreprocessor(cfg.sharpen, max_workers=cfg.preprocess_workers),
            adapter=StitchingEngineAdapter(engine),
        )

    def run(self, request: StitchRequest, cancelled: Optional[threading.Event] = None) -> StitchResult:
        # A request superseded before it starts never opens a workspace
        self._check_cancelled(cancelled, "start")

        try:
            with self.workspaces.open() as workspace:
                files = workspace.resolve(request.references)
                self._check_cancelled(cancelled, "resolve")

                images = [decode(path) for path in files]
                sharpened = self.preprocessor.sharpen_all(images)
                self._check_cancelled(cancelled, "sharpen")

                composite = self.adapter.stitch(sharpened, request.mode)
                # A superseded result never reaches the output directory
                self._check_cancelled(cancelled, "stitch")
                location = self.adapter.save(composite, workspace)

        except StitchCancelled:
            raise
        except StitchError as e:
            self.log.error(f"Stitch failed ({e.kind.value}): {e}")
            return Failure(e.kind, str(e))
        except Exception as e:
            self.log.error(f"Unexpected error while stitching: {e}", exc_info=True)
            return Failure(ErrorKind.UNEXPECTED, str(e) or type(e).__name__)

        self.log.info(f"Stitched {len(request)} images into {location}")
        return Success(location)

    def _check_cancelled(self, cancelled: Optional[threading.Event], stage: str):
        if cancelled is not None and cancelled.is_set():
            self.log.info(f"Request superseded after '{stage}', stopping")
            raise StitchCancelled(stage)
