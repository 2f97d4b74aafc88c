"""Heightmap and colormap images to optimized Brickadia brick saves."""

__all__ = [
    "BrickAsset",
    "ConversionJob",
    "GenOptions",
    "GenerationState",
    "Strategy",
    "generate",
    "load_options",
]


def __getattr__(name: str):
    if name in {"BrickAsset", "GenOptions", "Strategy", "load_options"}:
        from heightmap2brz import options

        return getattr(options, name)
    if name in {"ConversionJob", "GenerationState", "generate"}:
        from heightmap2brz import pipeline

        return getattr(pipeline, name)
    raise AttributeError(name)
