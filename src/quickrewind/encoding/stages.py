"""
Encoder Stages
==============

The three strategies of the export fallback chain, best first:

    1. AnimatedGifStage   -> <name>.gif
    2. ImageSequenceStage -> <name>_sequence/frame_NNN.png + README.txt
    3. SingleStillStage   -> <name>.png (last frame only)

Each stage reports success or failure through a StageResult instead of
raising, so the pipeline can walk the chain without exception unwinding.

Design Rules:
    - A stage that fails removes everything it created
    - Files are written under a temporary name and renamed into place
    - Stages never mutate the frames they are given
"""

import contextlib
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import cv2
from PIL import GifImagePlugin, Image

from quickrewind.capture.frame import Frame
from quickrewind.encoding.request import EncodingRequest
from quickrewind.models.export import ExportOutcome


logger = logging.getLogger(__name__)


SEQUENCE_DIR_SUFFIX = "_sequence"
SEQUENCE_MANIFEST_NAME = "README.txt"
PROGRESS_LOG_EVERY = 10

# Frame numbers are zero-padded to at least this many digits.
SEQUENCE_MIN_DIGITS = 3

# GIF "do not dispose": each frame is drawn over the previous one.
GIF_DISPOSAL_NONE = 1

# NETSCAPE loop count written once in the header. 0 would mean forever.
GIF_LOOP_COUNT = 1


@dataclass(frozen=True, slots=True)
class StageResult:
    """
    Outcome of a single stage attempt.

    Attributes:
        ok: Whether the stage wrote its artifact
        path: Artifact written (file or directory)
        error: Failure description when not ok
    """

    ok: bool
    path: Optional[Path] = None
    error: Optional[str] = None


def sequence_dir_for(target: Path) -> Path:
    """Directory used by the sequence fallback for `target`."""
    return target.with_name(f"{target.stem}{SEQUENCE_DIR_SUFFIX}")


def still_path_for(target: Path) -> Path:
    """Path used by the single-still fallback for `target`."""
    return target.with_suffix(".png")


@contextlib.contextmanager
def _atomic_target(path: Path) -> Iterator[Path]:
    """Yield a temporary sibling of `path`; move it into place on success."""
    tmp = path.with_name(f".{path.name}.partial")
    try:
        yield tmp
        os.replace(tmp, path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def _encode_png(frame: Frame) -> bytes:
    bgr = cv2.cvtColor(frame.pixels, cv2.COLOR_RGB2BGR)
    ok, data = cv2.imencode(".png", bgr)
    if not ok:
        raise IOError(f"PNG encoding failed for frame {frame.sequence}")
    return data.tobytes()


def _format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


class EncoderStage:
    """
    Base class for fallback stages.

    Subclasses implement `_write`, which either returns the written path or
    raises after cleaning up. `encode` turns that into a StageResult.

    Attributes:
        name: Short label used in logs and error lists
        outcome: ExportOutcome reported when this stage succeeds
    """

    name: str = "stage"
    outcome: ExportOutcome = ExportOutcome.FAILED

    def encode(self, request: EncodingRequest) -> StageResult:
        if not request.frames:
            return StageResult(ok=False, error="No frames to encode")

        try:
            path = self._write(request)
        except Exception as e:
            logger.warning(f"{self.name} encoding failed: {e}")
            return StageResult(ok=False, error=str(e) or type(e).__name__)

        return StageResult(ok=True, path=path)

    def _write(self, request: EncodingRequest) -> Path:
        raise NotImplementedError


class AnimatedGifStage(EncoderStage):
    """
    Animated GIF with per-frame adaptive palettes.

    Each frame is quantized to 256 colors with Floyd-Steinberg dithering to
    reduce banding. The delay is stored in centiseconds, truncated.
    """

    name = "animation"
    outcome = ExportOutcome.ANIMATION

    def __init__(self, colors: int = 256) -> None:
        self.colors = colors

    def _quantize(self, frame: Frame) -> Image.Image:
        image = Image.fromarray(frame.pixels)
        palette = image.quantize(colors=self.colors, method=Image.Quantize.MEDIANCUT)
        return image.quantize(palette=palette, dither=Image.Dither.FLOYDSTEINBERG)

    def _write(self, request: EncodingRequest) -> Path:
        total = len(request.frames)
        logger.info(f"Creating GIF with {total} frames...")

        images: List[Image.Image] = []
        for i, frame in enumerate(request.frames):
            images.append(self._quantize(frame))
            if i % PROGRESS_LOG_EVERY == 0:
                logger.debug(f"Quantized frame {i + 1}/{total}")

        # GIF stores centiseconds; truncate rather than round.
        frame_info = {
            "duration": (request.delay_ms // 10) * 10,
            "disposal": GIF_DISPOSAL_NONE,
            "include_color_table": True,
        }

        # Frames are written one by one: save_all would fold identical
        # consecutive frames into one and drop their count.
        with _atomic_target(request.target) as tmp, open(tmp, "wb") as fp:
            header, _ = GifImagePlugin.getheader(images[0], info={"loop": GIF_LOOP_COUNT})
            fp.writelines(header)
            for image in images:
                fp.writelines(GifImagePlugin.getdata(image, **frame_info))
            fp.write(b";")

        logger.info(f"GIF created successfully: {_format_size(request.target.stat().st_size)}")
        return request.target


class ImageSequenceStage(EncoderStage):
    """Numbered PNG per frame plus a plain-text manifest."""

    name = "sequence"
    outcome = ExportOutcome.SEQUENCE

    def _write(self, request: EncodingRequest) -> Path:
        directory = sequence_dir_for(request.target)
        if directory.exists():
            raise FileExistsError(f"Sequence directory already exists: {directory}")

        total = len(request.frames)
        logger.info(f"Creating PNG sequence with {total} frames in: {directory}")

        digits = max(SEQUENCE_MIN_DIGITS, len(str(total - 1)))
        directory.mkdir(parents=True)
        try:
            total_bytes = 0
            for i, frame in enumerate(request.frames):
                data = _encode_png(frame)
                (directory / f"frame_{i:0{digits}d}.png").write_bytes(data)
                total_bytes += len(data)
                if i % PROGRESS_LOG_EVERY == 0:
                    logger.debug(f"Written frame {i + 1}/{total}")

            self._write_manifest(directory, request)
        except Exception:
            shutil.rmtree(directory, ignore_errors=True)
            raise

        logger.info(f"PNG sequence created: {_format_size(total_bytes)} in {total} frames")
        return directory

    def _write_manifest(self, directory: Path, request: EncodingRequest) -> None:
        total = len(request.frames)
        seconds = total * request.delay_ms / 1000.0
        lines = [
            "QuickRewind Screen Capture Sequence",
            "===================================",
            f"Total frames: {total}",
            f"Frame delay: {request.delay_ms} ms",
            f"Capture time: ~{seconds:.1f} seconds",
            "",
            "To view:",
            "- Open frames in any image viewer",
            "- Step through frames in file-name order",
            "- Or import into video editing software",
            "",
        ]
        (directory / SEQUENCE_MANIFEST_NAME).write_text("\n".join(lines), encoding="utf-8")


class SingleStillStage(EncoderStage):
    """Last resort: the most recent frame as one PNG."""

    name = "screenshot"
    outcome = ExportOutcome.SCREENSHOT

    def _write(self, request: EncodingRequest) -> Path:
        path = still_path_for(request.target)
        data = _encode_png(request.frames[-1])

        with _atomic_target(path) as tmp:
            tmp.write_bytes(data)

        logger.info(f"PNG screenshot saved: {_format_size(len(data))}")
        return path


def default_stages() -> List[EncoderStage]:
    """The standard fallback chain, best first."""
    return [AnimatedGifStage(), ImageSequenceStage(), SingleStillStage()]
