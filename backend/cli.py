#!/usr/bin/env python3
"""
Thumbnail Studio CLI.

    thumbnail-studio serve [--host HOST] [--port PORT] [--reload]
    thumbnail-studio generate --image photo.jpg [--out thumbnails] [--video-type ...]

``generate`` runs the same pipeline as ``POST /api/v1/thumbnails`` and writes
each successful slot to ``<out>/<thumb id>_<aspect>.<ext>``.
"""

import argparse
import asyncio
import base64
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from fastapi import HTTPException

from config import FanoutMode, get_settings
from services.completion_client import (
    ImageClientConfig,
    RetryingCompletionClient,
    to_data_url,
)
from services.image_validation import validate_uploaded_image_payload
from services.prompt_builder import build_system_prompt
from services.prompt_rewriter import PromptRewriter
from services.thumbnail_set import (
    VariationResult,
    generate_thumbnail_set,
    summarize_status,
)

MIME_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


class Colors:
    """ANSI colors for terminal"""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"


def info(msg):
    print(f"{Colors.BLUE}[INFO]{Colors.RESET} {msg}")


def success(msg):
    print(f"{Colors.GREEN}[OK]{Colors.RESET} {msg}")


def warn(msg):
    print(f"{Colors.YELLOW}[WARN]{Colors.RESET} {msg}")


def error(msg):
    print(f"{Colors.RED}[ERROR]{Colors.RESET} {msg}", file=sys.stderr)


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, raw bytes)."""
    header, _, payload = data_url.partition(",")
    mime_type = header[len("data:"):].split(";", 1)[0] or "image/jpeg"
    return mime_type, base64.b64decode(payload)


def write_thumbnails(variations: list[VariationResult], out_dir: Path) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for variation in variations:
        for name, slot in variation.slots.items():
            if not slot.succeeded:
                warn(f"{variation.id} {slot.aspect.ratio}: {slot.error.code if slot.error else 'failed'}")
                continue
            mime_type, raw = decode_data_url(slot.image_data_url)
            path = out_dir / f"{variation.id}_{name}.{MIME_EXTENSIONS.get(mime_type, 'bin')}"
            path.write_bytes(raw)
            written.append(path)
            success(f"{variation.id} {slot.aspect.ratio} -> {path}")
    return written


async def generate_to_directory(
    client: RetryingCompletionClient,
    rewriter: PromptRewriter,
    image_path: Path,
    out_dir: Path,
    responses: dict,
    *,
    placement: str = "center",
    variations: int = 3,
    fanout: FanoutMode = FanoutMode.CONCURRENT,
    cancel_event: Optional[asyncio.Event] = None,
) -> tuple[str, list[Path]]:
    """Run the thumbnail pipeline for a local image; returns (status, written files)."""
    content = image_path.read_bytes()
    image_info = validate_uploaded_image_payload(content)
    base_image = to_data_url(content, image_info.mime_type)

    system_prompt = build_system_prompt(responses, placement)
    prompt = await rewriter.rewrite(system_prompt)
    info(f"Prompt: {prompt[:120]}{'...' if len(prompt) > 120 else ''}")

    results = await generate_thumbnail_set(
        client,
        prompt,
        base_image,
        variations=variations,
        fanout=fanout,
        cancel_event=cancel_event,
    )
    return summarize_status(results), write_thumbnails(results, out_dir)


async def _run_generate(args: argparse.Namespace) -> int:
    settings = get_settings()
    if not settings.OPENROUTER_API_KEY:
        error("OPENROUTER_API_KEY is not set. Add it to .env")
        return 1

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows: Ctrl+C falls back to KeyboardInterrupt

    client = RetryingCompletionClient(ImageClientConfig.from_settings(settings))
    rewriter = PromptRewriter.from_settings(settings)
    responses = {
        "video_type": args.video_type,
        "style": args.style,
        "mood": args.mood,
        "audience": args.audience,
        "context": args.context,
    }

    try:
        status, written = await generate_to_directory(
            client,
            rewriter,
            Path(args.image),
            Path(args.out),
            responses,
            placement=args.placement,
            variations=args.variations or settings.THUMBNAIL_VARIATIONS,
            fanout=FanoutMode(args.fanout) if args.fanout else settings.THUMBNAIL_FANOUT,
            cancel_event=cancel_event,
        )
    except HTTPException as e:
        error(f"Invalid image: {e.detail}")
        return 2
    except FileNotFoundError:
        error(f"Image not found: {args.image}")
        return 2

    if cancel_event.is_set():
        warn("Cancelled")
        return 130

    info(f"Status: {status}, {len(written)} file(s) written")
    return 0 if written else 1


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    host = args.host or settings.HOST
    port = args.port or settings.PORT
    info(f"Backend:  http://{host}:{port}")
    info(f"API Docs: http://{host}:{port}/docs")
    print(f"\n{Colors.DIM}Press Ctrl+C to stop{Colors.RESET}\n")
    uvicorn.run("main:app", host=host, port=port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thumbnail-studio", description="Thumbnail Studio - AI thumbnail generator"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the API server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    gen = sub.add_parser("generate", help="Generate thumbnails from a local photo")
    gen.add_argument("--image", required=True, help="Base photo (PNG, JPG, WEBP)")
    gen.add_argument("--out", default="thumbnails", help="Output directory")
    gen.add_argument("--video-type", default=None)
    gen.add_argument("--style", default=None)
    gen.add_argument("--mood", default=None)
    gen.add_argument("--audience", default=None)
    gen.add_argument("--context", default=None)
    gen.add_argument("--placement", default="center")
    gen.add_argument("--variations", type=int, default=None)
    gen.add_argument(
        "--fanout", choices=[m.value for m in FanoutMode], default=None
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        return _run_serve(args)
    return asyncio.run(_run_generate(args))


if __name__ == "__main__":
    sys.exit(main())
