from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup  # type: ignore

from .errors import InputFormatError
from .log import get_logger
from .model import MAX_FOLDER_DEPTH, ROOT_TITLE, Bookmark, BookmarkTree, Folder

log = get_logger(__name__)
_WS_RE = re.compile(r"\s+")


def parse_bookmarks_html(path: Path) -> BookmarkTree:
    text = path.read_text(encoding="utf-8", errors="replace")
    return parse_bookmarks_text(text)


def parse_bookmarks_text(text: str) -> BookmarkTree:
    soup = BeautifulSoup(text, "lxml")
    dl = soup.find("dl")
    if dl is None:
        raise InputFormatError("Could not find <DL> root in bookmarks file")

    root = Folder(title=ROOT_TITLE)
    stack: List[Tuple[object, Folder, int]] = [(dl, root, 0)]
    while stack:
        node, folder, depth = stack.pop()
        if depth > MAX_FOLDER_DEPTH:
            raise InputFormatError(f"Folder nesting deeper than {MAX_FOLDER_DEPTH} levels at {folder.title!r}")
        for dt in _entries(node):
            h3 = dt.find("h3", recursive=False)
            if h3 is not None:
                name = _WS_RE.sub(" ", h3.get_text(strip=True))
                sub_dl = _folder_body(dt)
                if sub_dl is None:
                    log.warning("Folder without DL: %s", name)
                    continue
                sub = Folder(
                    title=name,
                    add_date=_maybe_int(h3.get("add_date")),
                    last_modified=_maybe_int(h3.get("last_modified")),
                    parent_folder=folder.title,
                )
                folder.sub_folders.append(sub)
                stack.append((sub_dl, sub, depth + 1))
                continue

            a = dt.find("a", recursive=False)
            if a is not None and a.get("href"):
                folder.bookmarks.append(
                    Bookmark(
                        title=_WS_RE.sub(" ", a.get_text(strip=True)),
                        url=a.get("href"),
                        icon=a.get("icon") or None,
                        add_date=_maybe_int(a.get("add_date")),
                        tags=_split_tags(a.get("tags")),
                        parent_folder=folder.title,
                    )
                )
    return BookmarkTree(root=root)


def _entries(dl) -> Iterator:
    # Malformed exports nest logical sibling DTs inside each other; flatten them in document order.
    pending = list(dl.find_all("dt", recursive=False))
    pending.reverse()
    while pending:
        dt = pending.pop()
        yield dt
        if dt.find("h3", recursive=False) is None:
            nested = dt.find_all("dt", recursive=False)
            pending.extend(reversed(nested))


def _folder_body(dt) -> Optional[object]:
    sub_dl = dt.find("dl", recursive=False)
    if sub_dl is not None:
        return sub_dl
    nxt = dt.find_next_sibling()
    if nxt is not None and nxt.name == "dl":
        return nxt
    # Unclosed <DT>s nest a folder inside the preceding bookmark's DT, and lxml
    # then places the folder's DL after the outermost enclosing DT. Only the
    # innermost trailing DT of that chain can own it.
    outer = dt
    while outer.parent is not None and outer.parent.name == "dt":
        outer = outer.parent
    if outer is dt or _trailing_dt(outer) is not dt:
        return None
    nxt = outer.find_next_sibling()
    if nxt is not None and nxt.name == "dl":
        return nxt
    return None


def _trailing_dt(dt):
    while True:
        nested = dt.find_all("dt", recursive=False)
        if not nested:
            return dt
        dt = nested[-1]


def _split_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def _maybe_int(v) -> int:
    if v is None:
        return 0
    try:
        return int(v)
    except (TypeError, ValueError):
        return 0
