from __future__ import annotations

import argparse
import json
import logging
import os
import time
from typing import List, Optional

from colorama import Fore, Style, init as colorama_init

from clipcraft.errors import ClipCraftError, ProcessError
from clipcraft.settings import CLIP_STRATEGIES, Settings
from clipcraft.utils.formatting import human_size, require_url
from clipcraft.utils.logging import setup_logger
from clipcraft.web.state import build_services


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="ClipCraft: download media, cut clips and caption them")
    p.add_argument("--storage-dir", help="Directory for downloads and clips (env STORAGE_DIR)")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", help="Bind address (env HOST, default 0.0.0.0)")
    serve.add_argument("--port", type=int, help="Port (env PORT, default 3000)")

    download = sub.add_parser("download", help="Download one URL (blocks until done)")
    download.add_argument("url")

    clip = sub.add_parser("clip", help="Cut a clip from the latest download")
    clip.add_argument("start", type=float, help="Start time in seconds")
    clip.add_argument("end", type=float, help="End time in seconds")
    clip.add_argument("--strategy", choices=CLIP_STRATEGIES, help="Clip strategy (env CLIP_STRATEGY)")

    transcribe = sub.add_parser("transcribe", help="Transcribe a time range of the latest download")
    transcribe.add_argument("start", type=float)
    transcribe.add_argument("end", type=float)
    transcribe.add_argument("--json", action="store_true", help="Print the full caption JSON")

    sub.add_parser("files", help="List stored files")
    return p


def _print_progress(percent: float) -> None:
    print(Fore.GREEN + f"\r  {percent:5.1f}%" + Style.RESET_ALL, end="", flush=True)


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    # the app module reads these at import time
    os.environ["STORAGE_DIR"] = settings.storage_dir
    uvicorn.run("clipcraft.web.app:app", host=args.host or settings.host, port=args.port or settings.port)
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    colorama_init(autoreset=True)
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    if args.storage_dir:
        settings.storage_dir = args.storage_dir
    if getattr(args, "strategy", None):
        settings.clip_strategy = args.strategy
    logger = setup_logger(logfile=settings.log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "serve":
        return _serve(settings, args)

    services = build_services(settings)
    try:
        if args.command == "download":
            url = require_url(args.url)
            job_id = str(int(time.time() * 1000))
            print(Fore.CYAN + f"Downloading {args.url}" + Style.RESET_ALL)
            result = services.downloader.fetch(job_id, url, on_progress=_print_progress)
            print()
            stored = services.library.stat(result.filename)
            print(Fore.GREEN + f"Saved {stored.filename} ({human_size(stored.size_bytes)})" + Style.RESET_ALL)
        elif args.command == "clip":
            clip = services.clipper.extract(args.start, args.end)
            print(Fore.GREEN + f"Clip created: {clip.filename} ({human_size(clip.size_bytes)})" + Style.RESET_ALL)
        elif args.command == "transcribe":
            transcript = services.transcriber.transcribe(args.start, args.end)
            if args.json:
                print(json.dumps(transcript.to_dict(), indent=2))
            else:
                for cap in transcript.captions:
                    print(f"[{cap.start_time:7.2f} - {cap.end_time:7.2f}] {cap.text}")
                print(Fore.GREEN + f"{len(transcript.captions)} captions" + Style.RESET_ALL)
        elif args.command == "files":
            for f in services.library.list_files():
                print(f"{f.filename:40s} {human_size(f.size_bytes):>10s}")
    except ProcessError as exc:
        print()
        print(Fore.RED + f"Error: {exc.message}" + Style.RESET_ALL)
        if exc.details:
            print(Style.DIM + exc.details + Style.RESET_ALL)
        return 1
    except ClipCraftError as exc:
        print(Fore.RED + f"Error: {exc.message}" + Style.RESET_ALL)
        logger.debug("command failed", exc_info=True)
        return 1
    return 0
