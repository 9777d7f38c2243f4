"""Command line entry point: build the demo scene, render it, write a BMP."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from voxtrace.primitives import ITERATIONS, RESOLUTION_X, RESOLUTION_Y
from voxtrace.renderer import Renderer
from voxtrace.scene import ObjFormatError, default_scene


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voxtrace", description="Path trace the demo scene into a BMP image."
    )
    parser.add_argument("--data-dir", default="Input data", help="directory holding the OBJ meshes")
    parser.add_argument("--output", default="Render.bmp", help="BMP file to write")
    parser.add_argument("--width", type=_positive_int, default=RESOLUTION_X)
    parser.add_argument("--height", type=_positive_int, default=RESOLUTION_Y)
    parser.add_argument("--iterations", type=_positive_int, default=ITERATIONS)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parser().parse_args(argv)
    try:
        scene = default_scene(args.data_dir)
    except (OSError, ObjFormatError) as exc:
        print(f"Error loading mesh: {exc}", file=sys.stderr)
        return 1

    renderer = Renderer(
        scene, width=args.width, height=args.height, iterations=args.iterations
    )
    renderer.render_loop()
    renderer.write_image(args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())