from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .log import get_logger
from .model import BookmarkTree, Folder, walk_folders

log = get_logger(__name__)


@dataclass
class BookmarkStats:
    bookmark_count: int = 0
    folder_count: int = 0
    top_level_folders: List[Folder] = field(default_factory=list)


@dataclass
class RunStats:
    """Counters accumulated over all files of one run."""

    files_processed: int = 0
    files_skipped: int = 0
    bookmarks_seen: int = 0
    bookmarks_classified: int = 0
    bookmarks_dropped: int = 0
    batches_failed: int = 0
    halted: bool = False

    def log_summary(self) -> None:
        log.info(
            "Run summary: files processed=%d skipped=%d; bookmarks seen=%d classified=%d dropped=%d; failed batches=%d",
            self.files_processed,
            self.files_skipped,
            self.bookmarks_seen,
            self.bookmarks_classified,
            self.bookmarks_dropped,
            self.batches_failed,
        )


def count_bookmarks_and_folders(tree: BookmarkTree) -> BookmarkStats:
    stats = BookmarkStats(top_level_folders=list(tree.root.sub_folders))
    for folder, _depth in walk_folders(tree.root):
        stats.bookmark_count += len(folder.bookmarks)
        stats.folder_count += 1
    return stats


def log_initial_stats(stats: BookmarkStats) -> None:
    log.info("Initial structure: %d bookmarks in %d folders", stats.bookmark_count, stats.folder_count)


def log_final_stats(initial: BookmarkStats, final: BookmarkStats, dropped: int, max_folders: Optional[int]) -> bool:
    """Report the rebuilt tree; return False if counts do not reconcile."""
    log.info(
        "Final structure: %d bookmarks (%d unclassified), %d folders, %d top-level categories",
        final.bookmark_count,
        initial.bookmark_count - final.bookmark_count,
        final.folder_count,
        len(final.top_level_folders),
    )
    for folder in final.top_level_folders:
        subs = ", ".join(f.title for f in folder.sub_folders)
        log.info("  %s (%d bookmarks)%s", folder.title, len(folder.bookmarks), f": {subs}" if subs else "")

    if max_folders and len(final.top_level_folders) != max_folders:
        log.warning(
            "Found %d top-level folders instead of the expected %d",
            len(final.top_level_folders),
            max_folders,
        )
    if dropped:
        log.warning("%d bookmarks could not be classified and were skipped.", dropped)

    if initial.bookmark_count != final.bookmark_count + dropped:
        log.error(
            "Bookmark accounting mismatch: initial=%d final=%d dropped=%d",
            initial.bookmark_count,
            final.bookmark_count,
            dropped,
        )
        return False
    return True
