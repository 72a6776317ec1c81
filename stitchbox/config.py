import yaml
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional


@dataclass
class SharpenConfig:
    """Unsharp-mask parameters. Defaults are the values the pipeline has always used."""
    sigma: float = 1.0
    original_weight: float = 1.8
    residual_weight: float = -1.3
    bias: float = 0.0

    def __post_init__(self):
        if self.sigma <= 0:
            raise ValueError(f"sigma must be positive, got {self.sigma}")


@dataclass
class WorkspaceConfig:
    """Where temporary inputs and stitched results live."""
    work_root: Optional[Path] = None     # None -> system temp dir
    output_dir: Path = Path("./output")
    result_format: str = ".png"

    def __post_init__(self):
        if self.work_root is not None:
            self.work_root = Path(self.work_root)
        self.output_dir = Path(self.output_dir)
        if not self.result_format.startswith("."):
            self.result_format = "." + self.result_format


@dataclass
class StitchConfig:
    sharpen: SharpenConfig = field(default_factory=SharpenConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    engine: str = "opencv"
    engine_options: dict = field(default_factory=dict)
    preprocess_workers: int = 4

    def __post_init__(self):
        if self.preprocess_workers < 1:
            raise ValueError(f"preprocess_workers must be >= 1, got {self.preprocess_workers}")


def _build(cls, values: dict, section: str):
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{section}' config: {', '.join(sorted(unknown))}")
    return cls(**values)


def load_config(path=None) -> StitchConfig:
    """
    Load a StitchConfig from a YAML file.

    :param path: Path to the YAML file. None returns the defaults.
    """
    if path is None:
        return StitchConfig()

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping, got {type(raw).__name__}")

    raw = dict(raw)
    sharpen = _build(SharpenConfig, raw.pop("sharpen", None) or {}, "sharpen")
    workspace = _build(WorkspaceConfig, raw.pop("workspace", None) or {}, "workspace")
    top = _build(StitchConfig, raw, "root")
    top.sharpen = sharpen
    top.workspace = workspace
    return top
