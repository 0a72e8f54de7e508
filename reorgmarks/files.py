from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .log import get_logger

log = get_logger(__name__)

NETSCAPE_DOCTYPE = "<!doctype netscape-bookmark-file-1>"


def find_bookmark_files(data_dir: Path) -> List[Path]:
    out: List[Path] = []
    for p in sorted(data_dir.glob("*.html")):
        try:
            head = p.read_text(encoding="utf-8", errors="replace")[:4096]
        except OSError as e:
            log.warning("Cannot read %s: %s", p, e)
            continue
        if NETSCAPE_DOCTYPE in head.lower():
            out.append(p)
        else:
            log.debug("Skipping %s: not a Netscape bookmark export", p)
    return out


def output_path_for(source: Path, output_dir: Path, now: Optional[datetime] = None) -> Path:
    ts = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return output_dir / f"{source.stem}_organized_{ts}.html"
