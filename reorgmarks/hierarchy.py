from __future__ import annotations

import re
import time
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .log import get_logger
from .model import (
    ROOT_TITLE,
    Bookmark,
    BookmarkTree,
    CategoryGrouping,
    Folder,
    FolderAssignment,
    walk_folders,
)

log = get_logger(__name__)

GENERIC_CATEGORY = "Digital Resources"
FLATTEN_SEPARATOR = " - "
MAX_PATH_SEGMENTS = 2

CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "Technology": ("tech", "programming", "software", "dev", "code", "api", "web", "app", "tool"),
    "Work & Business": ("business", "work", "job", "finance", "market", "company", "professional"),
    "Digital Resources": ("resource", "online", "digital", "internet", "cloud", "service"),
    "Design & Creativity": ("design", "art", "creative", "visual", "graphic", "photo", "portfolio"),
    "Learning & Education": ("learn", "education", "course", "tutorial", "guide", "training"),
    "Leisure & Lifestyle": ("entertainment", "game", "music", "movie", "sport", "hobby"),
    "Security & Privacy": ("security", "privacy", "crypto", "blockchain", "protect"),
    "E-commerce & Shopping": ("shop", "store", "commerce", "retail", "product"),
    "Health & Wellness": ("health", "wellness", "fitness", "medical", "lifestyle"),
    "Community & Communication": ("community", "social", "communication", "forum", "chat"),
}

_WORD_RE = re.compile(r"[a-z]+")
_FILLER_WORDS = {"and", "the", "for"}


@dataclass
class RebuildResult:
    tree: BookmarkTree
    placed: int = 0
    dropped: List[Bookmark] = field(default_factory=list)
    flattened: int = 0


class CategoryResolver:
    """Maps a suggested folder path onto the top-level categories of a grouping."""

    def __init__(self, grouping: CategoryGrouping):
        self.categories: List[str] = [c for c in grouping if c.strip()]
        self._exact = set(self.categories)
        self._member_to_category: Dict[str, str] = {}
        self._members: List[Tuple[str, str]] = []
        for category in self.categories:
            for member in grouping[category]:
                key = member.strip().casefold()
                if not key or key in self._member_to_category:
                    continue
                self._member_to_category[key] = category
                self._members.append((member.strip(), category))

    def resolve(self, segments: List[str]) -> List[str]:
        head = segments[0]
        if head in self._exact:
            return segments

        whole = "/".join(segments)
        for key in (whole, head):
            category = self._member_to_category.get(key.casefold())
            if category:
                return _with_category(category, segments)

        category = _best_substring_match(head, [(c, c) for c in self.categories])
        if category:
            return [category] + segments[1:]

        category = _best_substring_match(whole, self._members)
        if category:
            return _with_category(category, segments)

        category = self.keyword_category(whole)
        log.info("Assigning folder %r to general category %r", whole, category)
        return _with_category(category, segments)

    def keyword_category(self, folder_name: str) -> str:
        folder_lower = folder_name.lower()
        best = GENERIC_CATEGORY
        best_hits = 0
        for category in self.categories:
            hits = sum(1 for kw in _keywords_for(category) if kw in folder_lower)
            if hits > best_hits:
                best, best_hits = category, hits
        return best


def split_path(raw: str) -> List[str]:
    return [seg.strip() for seg in (raw or "").split("/") if seg.strip()]


def flatten_path(segments: List[str]) -> List[str]:
    if len(segments) <= MAX_PATH_SEGMENTS:
        return segments
    return [segments[0], FLATTEN_SEPARATOR.join(segments[1:])]


def resolve_folder_path(raw: str, resolver: Optional[CategoryResolver] = None) -> Optional[List[str]]:
    """Return the target path (at most two segments) for ``raw``, or None.

    Never raises; None means there is no usable folder and the caller drops the bookmark.
    """
    path, _flattened = _resolve(raw, resolver)
    return path


def _resolve(raw: str, resolver: Optional[CategoryResolver]) -> Tuple[Optional[List[str]], bool]:
    segments = split_path(raw)
    if not segments:
        return None, False
    if resolver is not None and resolver.categories:
        segments = resolver.resolve(segments)
    return flatten_path(segments), len(segments) > MAX_PATH_SEGMENTS


def rebuild(
    tree: BookmarkTree,
    classifications: Mapping[str, FolderAssignment],
    grouping: Optional[CategoryGrouping] = None,
    now: Optional[int] = None,
) -> RebuildResult:
    ts = int(time.time()) if now is None else now
    root = Folder(title=ROOT_TITLE, add_date=ts, last_modified=ts)
    result = RebuildResult(tree=BookmarkTree(root=root))
    resolver = CategoryResolver(grouping) if grouping else None
    # normalized path -> folder created for it; owned by this call only
    folders: Dict[Tuple[str, ...], Folder] = {}
    flattened_paths = set()

    for folder, _depth in walk_folders(tree.root):
        for b in folder.bookmarks:
            assignment = classifications.get(b.url)
            if assignment is None:
                log.debug("No classification for %s; dropping.", b.url)
                result.dropped.append(b)
                continue

            path, flattened = _resolve(assignment.folder, resolver)
            if path is None:
                log.debug("Unresolvable folder %r for %s; dropping.", assignment.folder, b.url)
                result.dropped.append(b)
                continue

            if flattened:
                result.flattened += 1
                if assignment.folder not in flattened_paths:
                    flattened_paths.add(assignment.folder)
                    log.info("Flattened deep folder %r -> %r", assignment.folder, "/".join(path))

            target = _get_or_create(root, path, folders, ts)
            target.bookmarks.append(replace(b, tags=list(assignment.tags), parent_folder="/".join(path)))
            result.placed += 1

    sort_tree(result.tree)
    if result.dropped:
        log.info("Rebuilt tree: placed=%d dropped=%d flattened=%d", result.placed, len(result.dropped), result.flattened)
    return result


def sort_tree(tree: BookmarkTree) -> None:
    for folder, _depth in walk_folders(tree.root):
        folder.sub_folders.sort(key=lambda f: (f.title.casefold(), f.title))
        folder.bookmarks.sort(key=lambda b: (b.title.casefold(), b.title, b.url))


def _get_or_create(root: Folder, path: Sequence[str], folders: Dict[Tuple[str, ...], Folder], ts: int) -> Folder:
    node = root
    for i, seg in enumerate(path):
        key = tuple(s.casefold() for s in path[: i + 1])
        child = folders.get(key)
        if child is None:
            parent_path = "/".join(path[:i]) if i else ROOT_TITLE
            child = Folder(title=seg, add_date=ts, last_modified=ts, parent_folder=parent_path)
            folders[key] = child
            node.sub_folders.append(child)
        node = child
    return node


def _with_category(category: str, segments: List[str]) -> List[str]:
    if segments[0].casefold() == category.casefold():
        return [category] + segments[1:]
    return [category] + segments


def _best_substring_match(needle: str, candidates: Sequence[Tuple[str, str]]) -> Optional[str]:
    """Pick the category whose name overlaps ``needle`` the most.

    A candidate matches when either string contains the other, case-insensitively.
    Longest overlap wins, then the closest length, then the alphabetically first category.
    """
    n = needle.casefold()
    best: Optional[Tuple[int, int, str]] = None
    for text, category in candidates:
        t = text.casefold()
        if not t or not (t in n or n in t):
            continue
        rank = (-min(len(t), len(n)), abs(len(t) - len(n)), category)
        if best is None or rank < best:
            best = rank
    return best[2] if best else None


def _keywords_for(category: str) -> Tuple[str, ...]:
    words = {w for w in _WORD_RE.findall(category.lower()) if w not in _FILLER_WORDS}
    out: List[str] = []
    for name, keywords in CATEGORY_KEYWORDS.items():
        name_words = {w for w in _WORD_RE.findall(name.lower()) if w not in _FILLER_WORDS}
        if name.casefold() == category.casefold() or (name_words & words):
            out.extend(k for k in keywords if k not in out)
    return tuple(out)
