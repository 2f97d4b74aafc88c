"""Entry operation and the read/generate/write job state machine."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from heightmap2brz.errors import (
    GenerationCancelled,
    Heightmap2BrzError,
    OptionsError,
    SaveWriteError,
)
from heightmap2brz.image_analysis.sampler import ColorGrid, HeightGrid, load_maps
from heightmap2brz.optimizer.core import generate_bricks
from heightmap2brz.optimizer.models import BrickSet
from heightmap2brz.optimizer.progress import CancellationToken, ProgressReporter, ProgressTracker
from heightmap2brz.options import GenOptions
from heightmap2brz.save.compact import to_compressed_bytes
from heightmap2brz.save.database import write_structured_file
from heightmap2brz.save.document import SaveDocument, bricks_to_save

logger = logging.getLogger(__name__)

COMPACT_EXTENSION = ".brz"
DATABASE_EXTENSION = ".brdb"

GENERATE_START = 0.10
WRITE_START = 0.95


class GenerationState(str, Enum):
    PENDING = "Pending"
    READING = "Reading"
    GENERATING = "Generating"
    WRITING = "Writing"
    FINISHED = "Finished"
    CANCELLED = "Cancelled"
    FAILED = "Failed"

    @property
    def terminal(self) -> bool:
        return self in {GenerationState.FINISHED, GenerationState.CANCELLED, GenerationState.FAILED}


PathLike = Path | str


def _read(
    heightmaps: Optional[Iterable[PathLike]],
    colormap: Optional[PathLike],
    options: GenOptions,
    tracker: ProgressTracker,
) -> Tuple[HeightGrid, ColorGrid]:
    tracker.report(GenerationState.READING.value, 0.0)
    logger.info("Reading image files")
    grids = load_maps(
        [Path(p) for p in (heightmaps or [])],
        Path(colormap) if colormap is not None else None,
        options,
    )
    tracker.checkpoint(GenerationState.READING.value)
    return grids


def _generate(
    grids: Tuple[HeightGrid, ColorGrid],
    options: GenOptions,
    tracker: ProgressTracker,
) -> BrickSet:
    tracker.report(GenerationState.GENERATING.value, GENERATE_START)
    stage = tracker.stage(GenerationState.GENERATING.value, GENERATE_START, WRITE_START)
    heights, colors = grids
    return generate_bricks(heights, colors, options, stage)


def generate(
    heightmaps: Optional[Iterable[PathLike]],
    colormap: Optional[PathLike],
    options: GenOptions,
    progress: Optional[ProgressReporter] = None,
    cancel: Optional[CancellationToken] = None,
) -> BrickSet:
    """Sample the images and run the selected merge strategy.

    ``progress(stage, fraction)`` may return ``False`` to stop; ``cancel`` is
    polled between units of work. Either way :class:`GenerationCancelled` is
    raised and no brick set is produced.
    """
    tracker = ProgressTracker(progress, cancel)
    grids = _read(heightmaps, colormap, options, tracker)
    return _generate(grids, options, tracker)


def output_format(path: PathLike) -> str:
    suffix = Path(path).suffix.lower()
    if suffix not in {COMPACT_EXTENSION, DATABASE_EXTENSION}:
        raise OptionsError(f"Output file must end with {COMPACT_EXTENSION} or {DATABASE_EXTENSION}")
    return suffix


def write_save(document: SaveDocument, path: PathLike) -> Path:
    """Encode ``document`` in the format chosen by the extension of ``path``."""
    path = Path(path)
    if output_format(path) == DATABASE_EXTENSION:
        write_structured_file(document, path)
        return path
    data = to_compressed_bytes(document)
    try:
        path.write_bytes(data)
    except OSError as exc:
        raise SaveWriteError(path, str(exc)) from exc
    return path


@dataclass
class JobResult:
    state: GenerationState
    output: Optional[Path] = None
    brick_count: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.state is GenerationState.FINISHED


class ConversionJob:
    """One conversion from images to a save file.

    Walks ``Reading -> Generating -> Writing`` and ends in ``Finished``,
    ``Cancelled`` or ``Failed``. The output path is never touched once
    cancellation has been observed.
    """

    def __init__(
        self,
        heightmaps: Optional[Iterable[PathLike]],
        colormap: Optional[PathLike],
        options: GenOptions,
        output: PathLike,
        logger: Optional[logging.Logger] = None,
        saved_at_ms: Optional[int] = None,
    ) -> None:
        self.heightmaps: List[Path] = [Path(p) for p in (heightmaps or [])]
        self.colormap = Path(colormap) if colormap is not None else None
        self.options = options
        self.output = Path(output)
        self.logger = logger or logging.getLogger(__name__)
        self.state = GenerationState.PENDING
        self.saved_at_ms = saved_at_ms
        self.bricks: Optional[BrickSet] = None

    def _enter(self, state: GenerationState) -> None:
        self.logger.debug("Job state %s -> %s", self.state.value, state.value)
        self.state = state

    def _write(self, tracker: ProgressTracker) -> None:
        tracker.report(GenerationState.WRITING.value, WRITE_START)
        tracker.checkpoint(GenerationState.WRITING.value)
        self.logger.info("Writing save to %s", self.output)
        write_save(bricks_to_save(self.bricks, saved_at_ms=self.saved_at_ms), self.output)

    def run(
        self,
        progress: Optional[ProgressReporter] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> JobResult:
        tracker = ProgressTracker(progress, cancel)
        try:
            output_format(self.output)
            self._enter(GenerationState.READING)
            grids = _read(self.heightmaps, self.colormap, self.options, tracker)
            self._enter(GenerationState.GENERATING)
            self.bricks = _generate(grids, self.options, tracker)
            self._enter(GenerationState.WRITING)
            self._write(tracker)
        except GenerationCancelled as exc:
            self._enter(GenerationState.CANCELLED)
            self.logger.info("%s", exc)
            return JobResult(state=self.state, error=exc)
        except Heightmap2BrzError as exc:
            self._enter(GenerationState.FAILED)
            self.logger.error("%s", exc)
            return JobResult(state=self.state, error=exc)
        except Exception:
            self._enter(GenerationState.FAILED)
            raise
        self._enter(GenerationState.FINISHED)
        tracker.report(GenerationState.FINISHED.value, 1.0)
        self.logger.info("Done! Wrote %d bricks to %s", len(self.bricks), self.output)
        return JobResult(state=self.state, output=self.output, brick_count=len(self.bricks))
