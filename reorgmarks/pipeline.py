from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional

from .classify import classify_bookmarks
from .config import Settings
from .errors import AIServiceError, InputFormatError, MalformedResponseError
from .files import find_bookmark_files, output_path_for
from .grouping import group_folders
from .hierarchy import rebuild
from .log import get_logger
from .model import Bookmark, CategoryGrouping, classification_map, collect_bookmarks
from .parse_netscape import parse_bookmarks_html
from .stats import RunStats, count_bookmarks_and_folders, log_final_stats, log_initial_stats
from .writer_netscape import write_bookmarks_html

log = get_logger(__name__)


def process_all(cfg: Settings, *, dry_run: bool = False) -> RunStats:
    """Process every bookmark export in ``cfg.data_dir``, one file at a time.

    Returns the run statistics. ``halted`` is set when an exhausted quota
    stopped the run before all files were handled.
    """
    stats = RunStats()
    data_dir = Path(cfg.data_dir)
    files = find_bookmark_files(data_dir)
    if not files:
        log.error("No Netscape bookmark files found in %s", data_dir)
        log.info("Export your bookmarks as HTML and place them in the data directory.")
        return stats
    log.info("Found %d bookmark file%s to process.", len(files), "s" if len(files) > 1 else "")

    for idx, path in enumerate(files):
        try:
            process_file(path, cfg, stats, dry_run=dry_run)
        except AIServiceError as e:
            if e.is_quota_error:
                remaining = len(files) - idx - 1
                log.error("%s", e.message)
                log.warning(
                    "Stopping run due to %s quota exhaustion; %d remaining file(s) not processed.",
                    e.provider.upper(),
                    remaining,
                )
                stats.halted = True
                break
            stats.files_skipped += 1
            log.error("Skipping %s: %s", path.name, e.message)
        except (InputFormatError, OSError) as e:
            stats.files_skipped += 1
            log.error("Skipping %s: %s", path.name, e)
        except Exception:
            stats.files_skipped += 1
            log.exception("Unexpected error while processing %s; skipping.", path.name)

    stats.log_summary()
    return stats


def process_file(path: Path, cfg: Settings, stats: RunStats, *, dry_run: bool = False) -> Optional[Path]:
    t0 = time.time()
    log.info("Processing %s...", path)
    tree = parse_bookmarks_html(path)

    initial = count_bookmarks_and_folders(tree)
    log_initial_stats(initial)
    stats.bookmarks_seen += initial.bookmark_count

    unique = _unique_by_url(collect_bookmarks(tree))
    if len(unique) < initial.bookmark_count:
        log.info("%d duplicate URLs share a classification.", initial.bookmark_count - len(unique))

    run = classify_bookmarks(unique, cfg)
    stats.batches_failed += run.failed_batches
    stats.bookmarks_classified += len(run.results)

    if not run.results:
        stats.files_skipped += 1
        log.warning("No bookmarks were classified in %s. Skipping reorganization.", path.name)
        if run.quota_error is not None:
            raise run.quota_error
        return None
    if len(run.results) < len(unique):
        log.warning("Only %d out of %d bookmarks were classified.", len(run.results), len(unique))

    # A quota error stops the run, but what was classified so far is still written.
    pending_quota: Optional[AIServiceError] = run.quota_error

    grouping: Optional[CategoryGrouping] = None
    if cfg.max_folders and cfg.max_folders > 0 and pending_quota is None:
        folders = {c.suggested_folder for c in run.results if c.suggested_folder}
        log.info("Creating %d top-level categories...", cfg.max_folders)
        try:
            grouping = group_folders(folders, cfg.max_folders, cfg)
        except AIServiceError as e:
            if e.is_quota_error:
                pending_quota = e
            log.warning("Folder grouping failed (%s); keeping suggested folders as top level.", e.message)
        except MalformedResponseError as e:
            log.warning("Folder grouping failed (%s); keeping suggested folders as top level.", e)

    log.info("Reorganizing bookmarks...")
    result = rebuild(tree, classification_map(run.results), grouping)
    final = count_bookmarks_and_folders(result.tree)
    log_final_stats(initial, final, len(result.dropped), cfg.max_folders if grouping else None)
    stats.bookmarks_dropped += len(result.dropped)

    out_path: Optional[Path] = None
    if dry_run:
        log.info("Dry-run: not writing output file.")
    else:
        out_path = output_path_for(path, Path(cfg.output_dir))
        write_bookmarks_html(out_path, result.tree)
        log.info("Created organized bookmark file: %s", out_path)
    stats.files_processed += 1
    log.info("Done with %s in %d ms.", path.name, int((time.time() - t0) * 1000))

    if pending_quota is not None:
        raise pending_quota
    return out_path


def _unique_by_url(bookmarks: List[Bookmark]) -> List[Bookmark]:
    seen = set()
    out = []
    for b in bookmarks:
        if b.url in seen:
            continue
        seen.add(b.url)
        out.append(b)
    return out
