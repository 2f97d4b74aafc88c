from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .errors import Heightmap2BrzError
from .options import BrickAsset, GenOptions, Strategy, load_options, options_from_dict
from .pipeline import ConversionJob, GenerationState
from .preview import render_preview


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert heightmap images to a Brickadia save.")
    parser.add_argument("inputs", nargs="*", help="Input heightmap image files (PNG/JPG)")
    parser.add_argument("-o", "--output", default="./out.brz", help="Output file (BRZ, BRDB)")
    parser.add_argument("-c", "--colormap", help="Input colormap image (PNG/JPG)")
    parser.add_argument("-v", "--vertical", type=int, help="Vertical scale multiplier (default 1)")
    parser.add_argument("-s", "--size", type=int, help="Brick stud size (default 1)")
    parser.add_argument("--cull", action="store_true", help="Remove bottom level and fully transparent bricks")
    family = parser.add_mutually_exclusive_group()
    family.add_argument("--tile", action="store_true", help="Render bricks as tiles")
    family.add_argument("--smooth", action="store_true", help="Render bricks as smooth tiles")
    family.add_argument("--micro", action="store_true", help="Render bricks as micro bricks")
    family.add_argument("--stud", action="store_true", help="Render bricks as stud cubes")
    parser.add_argument("--snap", action="store_true", help="Snap bricks to the brick grid")
    parser.add_argument("--lrgb", action="store_true", help="Use linear rgb input color instead of sRGB")
    parser.add_argument("-i", "--img", action="store_true", help="Make the heightmap flat and render an image")
    parser.add_argument("--glow", action="store_true", help="Make the bricks glow")
    parser.add_argument("--hdmap", action="store_true", help="Input is a high detail rgb encoded heightmap")
    parser.add_argument("--nocollide", action="store_true", help="Disable brick collision")
    strategy = parser.add_mutually_exclusive_group()
    strategy.add_argument("--quadtree", action="store_true", help="Use quadtree optimization (default)")
    strategy.add_argument("--greedy", action="store_true", help="Use greedy optimization")
    strategy.add_argument("--no-optimize", action="store_true", help="Emit one brick per pixel")
    parser.add_argument("--config", type=Path, help="YAML file with generator options")
    parser.add_argument("--preview", type=Path, help="Also write a top-down preview PNG")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    return parser.parse_args(argv)


def _selected_asset(args: argparse.Namespace) -> Optional[BrickAsset]:
    if args.micro:
        return BrickAsset.MICRO
    if args.tile:
        return BrickAsset.TILE
    if args.smooth:
        return BrickAsset.SMOOTH_TILE
    if args.stud:
        return BrickAsset.STUD
    return None


def _selected_strategy(args: argparse.Namespace) -> Optional[Strategy]:
    if args.greedy:
        return Strategy.GREEDY
    if args.no_optimize:
        return Strategy.NONE
    if args.quadtree:
        return Strategy.QUADTREE
    return None


def build_options(args: argparse.Namespace) -> GenOptions:
    """Overlay explicit command line flags on the optional config file."""
    base = load_options(args.config) if args.config else GenOptions(quadtree=True)
    overrides = {}
    if args.size is not None:
        overrides["size"] = args.size
    if args.vertical is not None:
        overrides["scale"] = args.vertical
    asset = _selected_asset(args)
    if asset is not None:
        overrides["asset"] = asset
    for flag in ("cull", "snap", "lrgb", "img", "glow", "hdmap", "nocollide"):
        if getattr(args, flag):
            overrides[flag] = True
    options = options_from_dict(overrides, base=base)
    strategy = _selected_strategy(args)
    if strategy is not None:
        options = options.with_strategy(strategy)
    return options


def _colormap_for(args: argparse.Namespace, options: GenOptions) -> Optional[Path]:
    if args.colormap:
        return Path(args.colormap)
    if args.inputs and not options.hdmap:
        return Path(args.inputs[0])
    return None


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    logger = logging.getLogger("heightmap2brz.cli")

    try:
        options = build_options(args)
    except Heightmap2BrzError as exc:
        logger.error("Error: %s", exc)
        return 1
    if not args.inputs and not (options.img and args.colormap):
        logger.error("Error: at least one heightmap is required unless --img is used with --colormap")
        return 1

    job = ConversionJob(args.inputs, _colormap_for(args, options), options, args.output, logger=logger)
    result = job.run()
    if result.state is GenerationState.FAILED:
        return 1
    if args.preview and job.bricks is not None and result.ok:
        try:
            render_preview(job.bricks, job.bricks.width, job.bricks.height, args.preview)
        except Heightmap2BrzError as exc:
            logger.error("Error: %s", exc)
            return 1
        logger.info("Preview saved to %s", args.preview)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
