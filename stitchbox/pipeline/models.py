from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Tuple, Union

from stitchbox.errors import ErrorKind


class StitchMode(Enum):
    """Panorama: rotating camera, perspective model. Scans: near-flat subject, affine model."""
    PANORAMA = "panorama"
    SCANS = "scans"


@dataclass(frozen=True)
class StitchRequest:
    """Ordered image references plus the stitch mode. Immutable once built."""
    references: Tuple[Any, ...]
    mode: StitchMode = StitchMode.PANORAMA

    def __post_init__(self):
        refs = tuple(self.references)
        if not refs:
            raise ValueError("A stitch request needs at least one image reference")
        object.__setattr__(self, "references", refs)
        object.__setattr__(self, "mode", StitchMode(self.mode))

    def __len__(self):
        return len(self.references)


@dataclass(frozen=True)
class Success:
    location: Path

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False


StitchResult = Union[Success, Failure]
