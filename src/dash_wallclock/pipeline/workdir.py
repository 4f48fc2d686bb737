"""
Working Directory
=================

Filesystem layout shared with the transcoder.

Layout:
    <dir>/input       named pipe written by the pacer (transient)
    <dir>/live.mpd    DASH manifest written by the transcoder
    <dir>/*.m4s       media segments (and *.m4s.tmp while being written)

Design Rules:
    - prepare() creates what is missing and fails fast
    - Every removal is best-effort and idempotent
"""

import logging
import os
import stat
from pathlib import Path
from typing import List, Union

from dash_wallclock.errors import SetupError


logger = logging.getLogger(__name__)


PIPE_NAME = "input"
MANIFEST_NAME = "live.mpd"
ARTIFACT_SUFFIXES = (".mpd", ".m4s", ".m4s.tmp")


class WorkingDirectory:
    """
    Directory holding the input pipe and the transcoder output.

    Attributes:
        path: Directory path
        input_path: Named pipe the pacer writes to
        manifest_path: Manifest the transcoder writes
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.input_path = self.path / PIPE_NAME
        self.manifest_path = self.path / MANIFEST_NAME

    def prepare(self) -> None:
        """
        Create the directory and the named pipe if absent.

        Raises:
            SetupError: If either cannot be created
        """
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Cannot create working directory {self.path}: {e}") from e

        if self.input_path.exists():
            if not stat.S_ISFIFO(self.input_path.stat().st_mode):
                logger.warning(f"{self.input_path} exists and is not a named pipe")
            return

        try:
            os.mkfifo(self.input_path)
        except OSError as e:
            raise SetupError(f"Cannot create named pipe {self.input_path}: {e}") from e

        logger.info(f"Prepared working directory {self.path}")

    def artifacts(self) -> List[Path]:
        """Manifest and segment files currently in the directory."""
        if not self.path.is_dir():
            return []
        return sorted(
            p for p in self.path.iterdir()
            if p.name.endswith(ARTIFACT_SUFFIXES)
        )

    def remove_pipe(self) -> None:
        _remove(self.input_path)

    def remove_artifacts(self) -> int:
        """
        Remove manifest and segment files.

        Returns:
            Number of files removed.
        """
        try:
            entries = self.artifacts()
        except OSError as e:
            logger.warning(f"Cannot list {self.path}: {e}")
            return 0
        return sum(1 for p in entries if _remove(p))


def _remove(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Cannot remove {path}: {e}")
        return False
    return True
