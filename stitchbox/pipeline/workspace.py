import os
import shutil
import tempfile
import threading
import time
import uuid
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from stitchbox.config import WorkspaceConfig
from stitchbox.errors import WorkspaceError


class Workspace:
    """
    Request-scoped temporary directory plus one result slot.

    Temporary files (materialized inputs, intermediates) live in ``directory``
    and are removed by cleanup(). The result slot lives in the output
    directory and survives cleanup.

    Use as a context manager; cleanup runs on every exit path.
    """

    def __init__(self, manager: "WorkspaceManager", directory: Path):
        self.log = logging.getLogger("Workspace")
        self.manager = manager
        self.directory = directory
        self.result_path: Optional[Path] = None
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.cleanup()
            return False

        # Keep the error that is already propagating
        try:
            self.cleanup()
        except WorkspaceError as e:
            self.log.error(f"{e} (while handling {exc_type.__name__})")
        return False

    # ----------------------------------------------------------------------
    # INPUTS
    # ----------------------------------------------------------------------

    def resolve(self, references: Iterable[Any]) -> List[Path]:
        """
        Materialize every reference into a local file inside the workspace.

        Accepts filesystem paths, ``file://`` URIs, raw bytes and binary
        file-like objects. Order and duplicates are preserved.

        :raises WorkspaceError: if any reference cannot be read.
        """
        self._check_open()
        files = []
        for index, ref in enumerate(references):
            files.append(self._materialize(index, ref))
        self.log.info(f"Resolved {len(files)} inputs into {self.directory}")
        return files

    def _materialize(self, index: int, ref: Any) -> Path:
        if isinstance(ref, (bytes, bytearray, memoryview)):
            return self._write_bytes(index, bytes(ref), ".img")

        if hasattr(ref, "read"):
            try:
                data = ref.read()
            except (OSError, ValueError) as e:
                raise WorkspaceError(f"Failed to read input #{index}: {e}") from e
            if isinstance(data, str):
                raise WorkspaceError(f"Input #{index} is a text stream, expected binary")
            return self._write_bytes(index, data, ".img")

        source = self._local_path(index, ref)
        target = self.directory / f"input_{index:03d}{source.suffix.lower()}"
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise WorkspaceError(f"Failed to read input #{index} ({source}): {e}") from e
        return target

    def _local_path(self, index: int, ref: Any) -> Path:
        if isinstance(ref, os.PathLike):
            return Path(ref)

        if not isinstance(ref, str):
            raise WorkspaceError(f"Unsupported image reference #{index}: {type(ref).__name__}")

        parsed = urlparse(ref)
        if parsed.scheme == "file":
            return Path(url2pathname(parsed.path))
        # single-letter schemes are Windows drive letters
        if len(parsed.scheme) > 1:
            raise WorkspaceError(f"Unsupported reference scheme '{parsed.scheme}' for input #{index}")
        return Path(ref)

    def _write_bytes(self, index: int, data: bytes, suffix: str) -> Path:
        target = self.directory / f"input_{index:03d}{suffix}"
        try:
            target.write_bytes(data)
        except OSError as e:
            raise WorkspaceError(f"Failed to materialize input #{index}: {e}") from e
        return target

    def temp_path(self, name: str) -> Path:
        """Path for an intermediate artifact; removed by cleanup()."""
        self._check_open()
        return self.directory / name

    # ----------------------------------------------------------------------
    # RESULT
    # ----------------------------------------------------------------------

    def create_result_slot(self) -> Path:
        """Allocate the output location. It is outside the temporary set."""
        self._check_open()
        out_dir = self.manager.config.output_dir
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Cannot create output directory {out_dir}: {e}") from e

        ts = int(time.time() * 1000)
        name = f"stitched_{ts}_{uuid.uuid4().hex[:8]}{self.manager.config.result_format}"
        self.result_path = out_dir / name
        return self.result_path

    # ----------------------------------------------------------------------
    # CLEANUP
    # ----------------------------------------------------------------------

    def temp_files(self) -> List[Path]:
        if not self.directory.exists():
            return []
        return sorted(p for p in self.directory.rglob("*") if p.is_file())

    def cleanup(self):
        """Delete every temporary file of this request. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        try:
            shutil.rmtree(self.directory)
            self.log.debug(f"Removed workspace {self.directory}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise WorkspaceError(f"Failed to clean workspace {self.directory}: {e}") from e
        finally:
            self.manager._release(self)

    def _check_open(self):
        if self.closed:
            raise WorkspaceError("Workspace already cleaned up")


class WorkspaceManager:
    """
    Hands out one workspace at a time.

    Requests are single-flight, so a second live workspace means a previous
    request leaked; open() refuses it.
    """

    def __init__(self, config: Optional[WorkspaceConfig] = None):
        self.log = logging.getLogger("WorkspaceManager")
        self.config = config or WorkspaceConfig()
        self._lock = threading.Lock()
        self._active: Optional[Workspace] = None

    @property
    def active(self) -> Optional[Workspace]:
        return self._active

    def open(self) -> Workspace:
        with self._lock:
            if self._active is not None:
                raise WorkspaceError(f"Workspace {self._active.directory} is still in use")

            root = self.config.work_root
            try:
                if root is not None:
                    root.mkdir(parents=True, exist_ok=True)
                directory = Path(tempfile.mkdtemp(prefix="stitch_", dir=root))
            except OSError as e:
                raise WorkspaceError(f"Cannot create workspace: {e}") from e

            workspace = Workspace(self, directory)
            self._active = workspace

        self.log.debug(f"Opened workspace {directory}")
        return workspace

    def _release(self, workspace: Workspace):
        with self._lock:
            if self._active is workspace:
                self._active = None
