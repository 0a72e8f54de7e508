from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import List

from . import __version__
from .config import PROVIDER_DEFAULTS, Settings, load_settings
from .log import LogConfig, get_logger, setup_logging
from .pipeline import process_all

log = get_logger(__name__)

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_QUOTA = 3


def main(argv: List[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="reorgmarks",
        description="AI-assisted bookmark reorganizer (Netscape bookmark HTML in, reorganized HTML out).",
    )
    p.add_argument("-V", "--version", action="version", version=f"reorgmarks {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    sub = p.add_subparsers(dest="cmd", required=True)

    org = sub.add_parser("organize", help="Reorganize every bookmark export found in the data directory.")
    org.add_argument("--data-dir", default=None, help="Directory with exported bookmark HTML files.")
    org.add_argument("--output-dir", default=None, help="Directory for reorganized files.")
    org.add_argument("-k", "--api-key", default=None, help="Provider API key (default: REORG_API_KEY / AI_API_KEY / OPENAI_API_KEY).")
    org.add_argument("--provider", choices=sorted(PROVIDER_DEFAULTS), default=None, help="Classifier provider.")
    org.add_argument("--model", default=None, help="Model name (default depends on provider).")
    org.add_argument("--max-folders", type=int, default=None, help="Consolidate into this many top-level categories.")
    org.add_argument("--batch-size", type=int, default=None, help="Bookmarks per classification request.")
    org.add_argument("--log-level", default=None, help="DEBUG/INFO/WARN/ERROR (overrides env/config).")
    org.add_argument("--no-color", action="store_true", help="Disable colored logging.")
    org.add_argument("--dry-run", action="store_true", help="Run pipeline but do not write output files.")

    args = p.parse_args(argv)
    cfg = load_settings(args.config)
    _apply_overrides(cfg, args)
    setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))

    if args.cmd == "organize":
        return _cmd_organize(args, cfg)
    return EXIT_USAGE


def _apply_overrides(cfg: Settings, args) -> None:
    for attr in ("data_dir", "output_dir", "api_key", "provider", "model", "max_folders", "batch_size", "log_level"):
        v = getattr(args, attr, None)
        if v is not None:
            setattr(cfg, attr, v)
    if args.no_color:
        cfg.no_color = True


def _cmd_organize(args, cfg: Settings) -> int:
    t0 = time.time()
    if not cfg.api_key:
        log.error("API key is required. Set REORG_API_KEY (or AI_API_KEY / OPENAI_API_KEY) or use --api-key.")
        return EXIT_USAGE
    try:
        provider = cfg.provider_config()
    except ValueError as e:
        log.error("%s", e)
        return EXIT_USAGE
    if not Path(cfg.data_dir).is_dir():
        log.error("Data directory not found: %s", cfg.data_dir)
        return EXIT_USAGE

    log.info(
        "Using %s (%s) for bookmark classification; max top-level folders: %s",
        provider.name.upper(),
        provider.model,
        cfg.max_folders or "unbounded",
    )
    stats = process_all(cfg, dry_run=args.dry_run)
    log.info("Done in %d ms.", int((time.time() - t0) * 1000))
    if stats.halted:
        return EXIT_QUOTA
    return EXIT_OK
