from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import InputFormatError

ROOT_TITLE = "Bookmarks"
UNCATEGORIZED = "Uncategorized"
# Real exports rarely exceed a dozen levels; anything deeper is treated as broken input.
MAX_FOLDER_DEPTH = 64


@dataclass
class Bookmark:
    title: str
    url: str
    icon: Optional[str] = None
    add_date: int = 0
    tags: List[str] = field(default_factory=list)
    parent_folder: Optional[str] = None


@dataclass
class Folder:
    title: str
    add_date: int = 0
    last_modified: int = 0
    bookmarks: List[Bookmark] = field(default_factory=list)
    sub_folders: List["Folder"] = field(default_factory=list)
    parent_folder: Optional[str] = None


@dataclass
class BookmarkTree:
    root: Folder


@dataclass
class Classification:
    url: str
    suggested_tags: List[str] = field(default_factory=list)
    suggested_folder: str = UNCATEGORIZED


@dataclass(frozen=True)
class FolderAssignment:
    tags: Tuple[str, ...]
    folder: str


# category name -> existing folder names
CategoryGrouping = Dict[str, List[str]]


def walk_folders(root: Folder, max_depth: int = MAX_FOLDER_DEPTH) -> Iterator[Tuple[Folder, int]]:
    """Yield ``(folder, depth)`` in pre-order, root first at depth 0.

    Uses an explicit stack so hostile nesting cannot exhaust the interpreter stack.
    """
    stack: List[Tuple[Folder, int]] = [(root, 0)]
    while stack:
        folder, depth = stack.pop()
        if depth > max_depth:
            raise InputFormatError(f"Folder nesting deeper than {max_depth} levels at {folder.title!r}")
        yield folder, depth
        # Reverse so the first sub-folder is visited first.
        for sub in reversed(folder.sub_folders):
            stack.append((sub, depth + 1))


def iter_bookmarks(tree: BookmarkTree) -> Iterator[Bookmark]:
    for folder, _depth in walk_folders(tree.root):
        yield from folder.bookmarks


def collect_bookmarks(tree: BookmarkTree) -> List[Bookmark]:
    return list(iter_bookmarks(tree))


def classification_map(classifications: List[Classification]) -> Dict[str, FolderAssignment]:
    out: Dict[str, FolderAssignment] = {}
    for c in classifications:
        out[c.url] = FolderAssignment(tags=tuple(c.suggested_tags), folder=c.suggested_folder)
    return out
