from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Protocol

from chameleon.config import settings
from chameleon.errors import ConversionError

logger = logging.getLogger(__name__)

# Logical format names whose file extension differs from the name
# 論理フォーマット名と拡張子が異なるもの
FORMAT_EXTENSIONS: Dict[str, str] = {
    "markdown": "md",
    "gfm": "md",
    "commonmark": "md",
    "plain": "txt",
    "plaintext": "txt",
    "latex": "tex",
    "jpeg": "jpg",
    "tiff": "tif",
    "mpeg4": "mp4",
    "asciidoc": "adoc",
    "restructuredtext": "rst",
    "rst": "rst",
}


def extension_for(output_format: str) -> str:
    fmt = (output_format or "").strip().lower()
    if not fmt:
        raise ConversionError("Output format is required")
    return FORMAT_EXTENSIONS.get(fmt, fmt)


def output_path_for(input_path: Path, output_format: str, output_dir: Path) -> Path:
    return output_dir / f"{input_path.stem}.{extension_for(output_format)}"


class ConversionEngine(Protocol):
    def convert(self, input_path: Path, input_format: str, output_format: str, output_dir: Path) -> Path:
        ...


@dataclass
class CommandEngine:
    """Adapter that delegates a conversion to an external command-line tool.

    ``build_args`` turns (binary, input, input format, output format, output)
    into an argv list. Kept minimal so engines can be swapped freely.
    外部のコマンドラインツールに変換を委譲するアダプタ。
    """

    name: str
    binary: str
    build_args: Callable[[str, Path, str, str, Path], List[str]]
    timeout: int = field(default_factory=lambda: settings.conversion_timeout)

    def convert(self, input_path: Path, input_format: str, output_format: str, output_dir: Path) -> Path:  # type: ignore[override]
        executable = shutil.which(self.binary)
        if executable is None:
            raise ConversionError(f"{self.name} is not installed ({self.binary} not found)")
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_path_for(input_path, output_format, output_dir)
        args = self.build_args(executable, input_path, input_format, output_format, output_path)
        logger.info("Running %s: %s -> %s", self.name, input_path.name, output_path.name)
        try:
            completed = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise ConversionError(f"{self.name} timed out after {self.timeout}s") from exc
        except OSError as exc:
            raise ConversionError(f"Cannot run {self.name}: {exc}") from exc
        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip()
            raise ConversionError(f"{self.name} exited with status {completed.returncode}: {detail}")
        if not output_path.is_file():
            raise ConversionError(f"{self.name} did not produce {output_path.name}")
        return output_path


def _pandoc_args(exe: str, src: Path, src_fmt: str, dst_fmt: str, dst: Path) -> List[str]:
    args = [exe, str(src)]
    if src_fmt:
        args += ["-f", src_fmt]
    # Pandoc infers PDF output from the extension; it has no "pdf" writer name
    # PandocのPDF出力は拡張子から推定させる
    if dst_fmt.lower() != "pdf":
        args += ["-t", dst_fmt]
    return args + ["-o", str(dst)]


def _imagemagick_args(exe: str, src: Path, src_fmt: str, dst_fmt: str, dst: Path) -> List[str]:
    return [exe, str(src), str(dst)]


def _ffmpeg_args(exe: str, src: Path, src_fmt: str, dst_fmt: str, dst: Path) -> List[str]:
    return [exe, "-nostdin", "-y", "-loglevel", "error", "-i", str(src), str(dst)]


@dataclass
class CopyEngine:
    """Tiny engine that only rewrites the bytes under the target extension.

    Useful for tests and dry runs without external tools.
    外部ツールなしでテストやドライランに使うエンジン。
    """

    def convert(self, input_path: Path, input_format: str, output_format: str, output_dir: Path) -> Path:  # type: ignore[override]
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_path_for(input_path, output_format, output_dir)
        try:
            output_path.write_bytes(input_path.read_bytes())
        except OSError as exc:
            raise ConversionError(f"Cannot copy {input_path.name}: {exc}") from exc
        return output_path


def get_engine(engine: str) -> ConversionEngine:
    engine_norm = (engine or "").strip().lower()
    if engine_norm in ("pandoc", "document", "doc"):
        return CommandEngine("pandoc", settings.pandoc_path, _pandoc_args)
    if engine_norm in ("imagemagick", "magick", "image"):
        return CommandEngine("ImageMagick", settings.imagemagick_path, _imagemagick_args)
    if engine_norm in ("ffmpeg", "media", "audio", "video"):
        return CommandEngine("ffmpeg", settings.ffmpeg_path, _ffmpeg_args)
    if engine_norm in ("copy", "dummy", "test"):
        return CopyEngine()
    raise ValueError(f"Unknown conversion engine: {engine!r}")
