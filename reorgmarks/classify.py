from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config import Settings
from .errors import AIServiceError
from .log import get_logger
from .model import UNCATEGORIZED, Bookmark, Classification
from .openai_client import classify_batch

log = get_logger(__name__)


SYSTEM_PROMPT_CLASSIFY = (
    "You are a bookmark classification assistant. Analyze URLs and titles to suggest tags and "
    "folders for organization. Be concise and follow the exact format requested."
)

# "[3]", "**[3]**" or "[3]:" at the start of a line opens the section for item 3.
_ORDINAL_RE = re.compile(r"^[ \t>*#_-]*\[(\d+)\][*_:]*", re.MULTILINE)
_FIELD_RE = re.compile(r"^[\s>*_-]*(tags|folder)[*_]*\s*:[*_]*\s*(.*)$", re.IGNORECASE)


@dataclass
class ClassificationRun:
    results: List[Classification] = field(default_factory=list)
    failed: List[Bookmark] = field(default_factory=list)
    failed_batches: int = 0
    batches_total: int = 0
    quota_error: Optional[AIServiceError] = None

    @property
    def aborted(self) -> bool:
        return self.quota_error is not None


def classify_bookmarks(bookmarks: Sequence[Bookmark], cfg: Settings) -> ClassificationRun:
    """Classify bookmarks batch by batch, one remote call at a time.

    A failed batch is recorded and skipped. A quota error stops the loop: the
    run returned holds only the batches completed before it, with
    ``quota_error`` set so the caller can halt.
    """
    run = ClassificationRun()
    if not bookmarks:
        return run

    provider = cfg.provider_config()
    batch_size = max(1, int(cfg.batch_size))
    batches = [list(bookmarks[i:i + batch_size]) for i in range(0, len(bookmarks), batch_size)]
    run.batches_total = len(batches)
    log.info(
        "Classifying %d bookmarks in %d batches (batch_size=%d, provider=%s, model=%s)",
        len(bookmarks),
        len(batches),
        batch_size,
        provider.name,
        provider.model,
    )

    for idx, batch in enumerate(batches):
        label = f"batch-{idx + 1}/{len(batches)}"
        log.info("Processing %s (%d bookmarks)...", label, len(batch))
        try:
            res = classify_batch(
                provider=provider,
                system_prompt=SYSTEM_PROMPT_CLASSIFY,
                user_payload=build_classify_prompt(batch, cfg.custom_prompt),
                batch_label=label,
            )
            run.results.extend(parse_classification_text(res.text, batch))
        except AIServiceError as e:
            run.failed.extend(batch)
            run.failed_batches += 1
            if e.is_quota_error:
                log.error("%s", e.message)
                log.warning("Stopping classification due to exhausted quota; %d batches not attempted.", len(batches) - idx - 1)
                run.quota_error = e
                break
            log.error("Failed to classify %s of %d bookmarks: %s", label, len(batch), e.message)
        except Exception as e:
            run.failed.extend(batch)
            run.failed_batches += 1
            log.error("Failed to classify %s of %d bookmarks: %s", label, len(batch), e)
        else:
            if idx + 1 < len(batches) and cfg.batch_delay_s > 0:
                time.sleep(cfg.batch_delay_s)

    if run.failed:
        log.warning(
            "%d bookmarks could not be classified (%d/%d batches failed).",
            len(run.failed),
            run.failed_batches,
            len(batches),
        )
    return run


def build_classify_prompt(batch: Sequence[Bookmark], custom_prompt: str = "") -> str:
    items = "\n\n".join(f"[{i + 1}]\nTitle: {b.title}\nURL: {b.url}" for i, b in enumerate(batch))
    prompt = (
        "Analyze these bookmarks and suggest appropriate tags and folders for each:\n\n"
        f"{items}\n\n"
        "For each bookmark, provide the classification in this exact format:\n"
        "[Number]\n"
        "Tags: tag1, tag2, tag3\n"
        "Folder: folder_name\n\n"
        "Use '/' in the folder name for nested folders (at most two levels, e.g. Technology/Programming).\n"
        "Consider the content, purpose, and context of each bookmark."
    )
    if custom_prompt.strip():
        prompt += f"\n\nAdditional instructions: {custom_prompt.strip()}"
    return prompt


def parse_classification_text(text: str, batch: Sequence[Bookmark]) -> List[Classification]:
    sections = _split_sections(text)
    out: List[Classification] = []
    malformed = 0
    for i, b in enumerate(batch):
        tags, folder = _parse_section(sections.get(i + 1, ""))
        if folder is None:
            malformed += 1
            tags, folder = [], UNCATEGORIZED
        out.append(Classification(url=b.url, suggested_tags=tags, suggested_folder=folder))
    if malformed:
        log.warning("%d/%d response sections missing or malformed; using %r.", malformed, len(batch), UNCATEGORIZED)
    return out


def _split_sections(text: str) -> Dict[int, str]:
    sections: Dict[int, str] = {}
    matches = list(_ORDINAL_RE.finditer(text or ""))
    for pos, m in enumerate(matches):
        end = matches[pos + 1].start() if pos + 1 < len(matches) else len(text)
        n = int(m.group(1))
        # First occurrence wins if the model repeats an ordinal.
        sections.setdefault(n, text[m.end():end])
    return sections


def _parse_section(section: str):
    tags: List[str] = []
    folder: Optional[str] = None
    for line in section.splitlines():
        m = _FIELD_RE.match(line)
        if not m:
            continue
        key, value = m.group(1).lower(), m.group(2).strip().strip("*_").strip()
        if key == "tags" and not tags:
            tags = _split_tags(value)
        elif key == "folder" and folder is None and value:
            folder = value
    return tags, folder


def _split_tags(value: str) -> List[str]:
    seen = set()
    out = []
    for raw in value.split(","):
        t = raw.strip()
        if not t or t in seen:
            continue
        seen.add(t)
        out.append(t)
    return out
