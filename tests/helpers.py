import threading
import time
from typing import List, Optional, Sequence

import cv2
import numpy as np

from stitchbox.pipeline.models import StitchMode
from stitchbox.pipeline.stitcher import EngineStatus, StitchingEngine


class ScriptedEngine(StitchingEngine):
    """
    Engine double that replays scripted statuses.

    On OK the composite is the inputs placed side by side, so its width tells
    which request produced it. ``hold`` blocks the first call until set.
    """

    name = "scripted"

    def __init__(self, statuses: Sequence[int] = (EngineStatus.OK,), hold: Optional[threading.Event] = None):
        self.statuses = list(statuses)
        self.hold = hold
        self.entered = threading.Event()
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def stitch(self, images, mode: StitchMode):
        with self._lock:
            index = len(self.calls)
            self.calls.append({
                "count": len(images),
                "mode": mode,
                "shapes": [img.shape for img in images],
            })
        self.entered.set()

        if index == 0 and self.hold is not None:
            assert self.hold.wait(10), "held engine call was never released"

        status = self.statuses[min(index, len(self.statuses) - 1)]
        if status != EngineStatus.OK:
            return status, None
        return EngineStatus.OK, np.hstack(list(images))


class RaisingEngine(StitchingEngine):
    name = "raising"

    def __init__(self, exc: Exception):
        self.exc = exc

    def stitch(self, images, mode):
        raise self.exc


FRAME_W = 640
FRAME_H = 480


def make_scene(width=1200, height=FRAME_H, seed=7):
    """A feature-rich synthetic wall: random filled shapes and lines over a noisy gradient."""
    rng = np.random.default_rng(seed)
    gradient = np.linspace(60, 190, width, dtype=np.float32)
    scene = np.repeat(gradient[None, :, None], height, axis=0).repeat(3, axis=2)
    scene = (scene + rng.normal(0, 6, scene.shape)).clip(0, 255).astype(np.uint8)

    for _ in range(400):
        color = tuple(int(c) for c in rng.integers(0, 256, 3))
        x, y = int(rng.integers(0, width)), int(rng.integers(0, height))
        kind = int(rng.integers(0, 3))
        if kind == 0:
            cv2.circle(scene, (x, y), int(rng.integers(4, 30)), color, -1)
        elif kind == 1:
            cv2.rectangle(scene, (x, y), (x + int(rng.integers(8, 50)), y + int(rng.integers(8, 50))), color, -1)
        else:
            end = (int(rng.integers(0, width)), int(rng.integers(0, height)))
            cv2.line(scene, (x, y), end, color, int(rng.integers(1, 4)))
    return scene


def crop(scene, x, width=FRAME_W):
    return np.ascontiguousarray(scene[:, x:x + width])


def leftover_files(root):
    """Temporary files still present under the workspace root."""
    if not root.exists():
        return []
    return [p for p in root.rglob("*") if p.is_file()]


def pump_until(completion, predicate, timeout=10.0):
    """Run queued deliveries on this thread until predicate() holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("timed out waiting for delivery")
        completion.run_pending(timeout=0.05)


def wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("timed out")
        time.sleep(0.01)
