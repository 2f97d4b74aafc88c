"""Brick generation: quantization, merge strategies and progress handling."""

__all__ = [
    "Brick",
    "BrickSet",
    "CancellationToken",
    "ProgressTracker",
    "generate_bricks",
    "merge_rectangles",
]


def __getattr__(name: str):
    if name in {"Brick", "BrickSet"}:
        from heightmap2brz.optimizer import models

        return getattr(models, name)
    if name in {"CancellationToken", "ProgressTracker"}:
        from heightmap2brz.optimizer import progress

        return getattr(progress, name)
    if name == "generate_bricks":
        from heightmap2brz.optimizer.core import generate_bricks

        return generate_bricks
    if name == "merge_rectangles":
        from heightmap2brz.optimizer.greedy import merge_rectangles

        return merge_rectangles
    raise AttributeError(name)
