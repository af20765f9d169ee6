import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .core.errors import InvalidInput, PackagingFailure
from .core.models import Scene
from .core.settings import load_settings
from .core.storage import load_scene
from .exporter import EXPORT_FILENAME, export_scene, export_to_directory

logger = logging.getLogger("designtocode")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="designtocode",
        description="Export canvas designs as static HTML/CSS bundles.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--settings", help="Path to a JSON settings file")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP export service")
    serve.add_argument("--host", help="Interface to bind (default from settings)")
    serve.add_argument("--port", type=int, help="Port to listen on (default from settings)")

    export = sub.add_parser("export", help="Export a saved scene file")
    export.add_argument("scene", help="Scene JSON file")
    export.add_argument("-o", "--output", default=EXPORT_FILENAME, help="Archive to write")
    export.add_argument("--dir", help="Write an unpacked site to this directory instead")
    export.add_argument("--canvas-width", type=float, help="Override the scene canvas width")
    export.add_argument("--canvas-height", type=float, help="Override the scene canvas height")
    return parser


def _serve(args: argparse.Namespace) -> int:
    from .server import create_app

    settings = load_settings(args.settings)
    app = create_app(settings)
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("Backend listening on %s:%s", host, port)
    app.run(host=host, port=port)
    return 0


def _export(args: argparse.Namespace) -> int:
    settings = load_settings(args.settings)
    try:
        scene = load_scene(args.scene)
    except OSError as exc:
        logger.error("Cannot read %s: %s", args.scene, exc)
        return 2
    except InvalidInput as exc:
        logger.error("Invalid scene: %s", exc)
        return 2

    if args.canvas_width is not None or args.canvas_height is not None:
        scene = Scene(
            elements=scene.elements,
            canvas_width=args.canvas_width if args.canvas_width is not None else scene.canvas_width,
            canvas_height=args.canvas_height if args.canvas_height is not None else scene.canvas_height,
        )

    try:
        if args.dir:
            result = export_to_directory(scene, args.dir, settings)
            target = args.dir
        else:
            result = export_scene(scene, settings)
            Path(args.output).write_bytes(result.data)
            target = args.output
    except (PackagingFailure, OSError) as exc:
        logger.error("Export failed: %s", exc)
        return 1

    for warning in result.warnings:
        logger.warning(warning)
    logger.info("Export written to %s (%d asset(s))", target, result.assets_written)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    if args.command == "serve":
        return _serve(args)
    return _export(args)


if __name__ == "__main__":
    raise SystemExit(main())
