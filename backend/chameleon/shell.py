from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol

from chameleon.errors import FileShellError


class FileShell(Protocol):
    def open(self, path: Path) -> None:
        ...

    def reveal(self, path: Path) -> None:
        ...


@dataclass
class SystemFileShell:
    """Hands files to the desktop's default opener or file manager.

    Launches are fire-and-forget; a failure to start the helper raises
    ``FileShellError``.
    デスクトップ既定のアプリやファイルマネージャーにファイルを渡す。
    """

    platform: str = sys.platform

    def open(self, path: Path) -> None:
        if self.platform.startswith("win"):
            self._startfile(path)
            return
        opener = "open" if self.platform == "darwin" else "xdg-open"
        self._spawn([opener, str(path)])

    def reveal(self, path: Path) -> None:
        if self.platform == "darwin":
            self._spawn(["open", "-R", str(path)])
        elif self.platform.startswith("win"):
            self._spawn(["explorer", f"/select,{path}"])
        else:
            # xdg has no "select" verb; show the containing folder instead
            # xdgには選択表示がないため親フォルダを開く
            self._spawn(["xdg-open", str(path.parent)])

    def _spawn(self, args: List[str]) -> None:
        try:
            subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise FileShellError(f"Cannot run {args[0]}: {exc}") from exc

    def _startfile(self, path: Path) -> None:
        try:
            os.startfile(str(path))  # type: ignore[attr-defined]
        except OSError as exc:
            raise FileShellError(f"Cannot open {path}: {exc}") from exc
