"""Error taxonomy shared by the sampler, optimizer and save encoders."""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class Heightmap2BrzError(RuntimeError):
    """Base error for every failed conversion."""


class ImageReadError(Heightmap2BrzError, OSError):
    """Raised when an input image cannot be opened or read."""

    def __init__(self, path: Path | str, detail: Optional[str] = None) -> None:
        self.path = Path(path)
        message = f"Unable to read image: {self.path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ImageDecodeError(Heightmap2BrzError):
    """Raised for unsupported or malformed image data."""

    def __init__(self, format: str, detail: Optional[str] = None) -> None:
        self.format = format
        message = f"Unsupported image format '{format}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DimensionMismatchError(Heightmap2BrzError):
    """Raised when heightmap tiles or the colormap disagree in size."""


class EncodeError(Heightmap2BrzError):
    """Raised when a brick set breaks a save format limit."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to encode save: {reason}")


class SaveWriteError(Heightmap2BrzError, OSError):
    """Raised when a save file cannot be written."""

    def __init__(self, path: Path | str, detail: Optional[str] = None) -> None:
        self.path = Path(path)
        message = f"Failed to write save: {self.path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class OptionsError(Heightmap2BrzError, ValueError):
    """Raised for invalid generator configuration."""


class GenerationCancelled(Exception):
    """Raised when the caller stops a running generation.

    Not a :class:`Heightmap2BrzError`: a cancelled run is a normal outcome.
    """

    def __init__(self, stage: str = "Generating") -> None:
        self.stage = stage
        super().__init__(f"Stopped by user during {stage.lower()}")
