"""Run one try-on from the command line.

Usage:
    oui-tryon photo.jpg --garment 4 --output result.jpg
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .catalog import CLOTHING_ITEMS, get_garment_by_id
from .config import ApiConfig, ClientConfig, load_config
from .models import CapturedPhoto
from .pipeline import WorkflowController


class FilePhotoSource:
    """Camera and gallery stand-in that always returns the same file."""

    def __init__(self, path: Path):
        self.path = path

    async def has_permission(self) -> bool:
        return True

    async def request_permission(self) -> bool:
        return True

    async def capture(self) -> CapturedPhoto | None:
        return CapturedPhoto.from_uri(str(self.path))

    async def pick_image(self) -> CapturedPhoto | None:
        return CapturedPhoto.from_uri(str(self.path))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oui-tryon", description="Virtual try-on client")
    parser.add_argument("photo", type=Path, nargs="?", help="Person photo to try garments on")
    parser.add_argument("--garment", default="1", help="Catalog id (unknown ids fall back to the first item)")
    parser.add_argument("--output", type=Path, default=Path("tryon_result.jpg"))
    parser.add_argument("--base-url", help="Inference service base URL")
    parser.add_argument(
        "--wait-preprocess",
        action="store_true",
        help="Wait for background preprocessing so the request can reuse its cache key",
    )
    parser.add_argument("--list", action="store_true", help="List catalog items and exit")
    return parser


async def run(args: argparse.Namespace, config: ClientConfig) -> int:
    if args.base_url:
        config.api = ApiConfig(base_url=args.base_url, user_agent=config.api.user_agent)

    garment = get_garment_by_id(args.garment)
    source = FilePhotoSource(args.photo)
    controller = WorkflowController(config, garment, capture=source, gallery=source)

    print(f"Try on: {garment.name} ({garment.cloth_type.value})")
    try:
        await controller.pick_from_gallery()
        if controller.error_message:
            print(f"Error: {controller.error_message}")
            return 1

        if args.wait_preprocess:
            await controller.wait_for_preprocessing()

        if not await controller.submit():
            print(f"Error: {controller.error_message}")
            print()
            print(controller.export_diagnostics())
            return 1

        controller.result.save(args.output)
        print(f"Saved: {args.output}")
        return 0
    finally:
        await controller.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    logging.basicConfig(level=config.log_level.upper(), format=config.log_format)

    if args.list:
        for item in CLOTHING_ITEMS:
            print(f"{item.garment_id:>3}  {item.name:<24} {item.cloth_type.value:<8} {item.price or ''}")
        return 0
    if args.photo is None:
        build_parser().error("photo is required")
    if not args.photo.is_file():
        print(f"Photo not found: {args.photo}", file=sys.stderr)
        return 2

    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
