from __future__ import annotations

import html
from pathlib import Path
from typing import List

from .log import get_logger
from .model import Bookmark, BookmarkTree, Folder

log = get_logger(__name__)

INDENT = "    "

HEADER = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<!-- This is an automatically generated file.
     It will be read and overwritten.
     DO NOT EDIT! -->
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>"""


def render_bookmarks_html(tree: BookmarkTree) -> str:
    """Render a tree as Netscape bookmark HTML.

    The root folder becomes the outer ``<DL>``; every nested level is indented
    by four spaces. Tags are written as a comma separated ``TAGS`` attribute,
    which Firefox imports as bookmark tags.
    """
    lines: List[str] = [HEADER, "<DL><p>"]
    _write_folder_body(lines, tree.root, indent=INDENT)
    lines.append("</DL><p>")
    return "\n".join(lines) + "\n"


def write_bookmarks_html(out_path: Path, tree: BookmarkTree) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(render_bookmarks_html(tree), encoding="utf-8")
    log.info("Wrote bookmarks HTML: %s", out_path)


def _write_folder_body(lines: List[str], folder: Folder, indent: str) -> None:
    for b in folder.bookmarks:
        lines.append(f"{indent}{_bookmark_line(b)}")
    for sub in folder.sub_folders:
        lines.append(
            f'{indent}<DT><H3 ADD_DATE="{sub.add_date}" LAST_MODIFIED="{sub.last_modified}">{html.escape(sub.title)}</H3>'
        )
        lines.append(f"{indent}<DL><p>")
        _write_folder_body(lines, sub, indent + INDENT)
        lines.append(f"{indent}</DL><p>")


def _bookmark_line(b: Bookmark) -> str:
    attrs = [f'HREF="{html.escape(b.url, quote=True)}"', f'ADD_DATE="{b.add_date}"']
    if b.icon:
        attrs.append(f'ICON="{html.escape(b.icon, quote=True)}"')
    if b.tags:
        attrs.append(f'TAGS="{html.escape(",".join(b.tags), quote=True)}"')
    return f"<DT><A {' '.join(attrs)}>{html.escape(b.title)}</A>"
