from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from pydantic import RootModel, ValidationError

from .config import Settings
from .errors import MalformedResponseError
from .log import get_logger
from .model import CategoryGrouping
from .openai_client import debug_log_response_text, suggest_category_groups

log = get_logger(__name__)

SYSTEM_PROMPT_GROUP = (
    "You are a bookmark organization assistant. Return only valid JSON that matches the "
    "requested format exactly."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)


class CategoryGroupingPayload(RootModel[Dict[str, List[str]]]):
    pass


def group_folders(folder_names: Iterable[str], target_count: int, cfg: Settings) -> CategoryGrouping:
    names = sorted({n.strip() for n in folder_names if n and n.strip()})
    if not names:
        return {}
    log.info("Found %d folders to organize into %d categories", len(names), target_count)

    res = suggest_category_groups(
        provider=cfg.provider_config(),
        system_prompt=SYSTEM_PROMPT_GROUP,
        user_payload=build_group_prompt(names, target_count, cfg.custom_folder_prompt),
        batch_label=f"folders-{len(names)}",
    )
    grouping = parse_grouping_text(res.text)

    log.info("Created %d top-level categories:", len(grouping))
    for category, members in grouping.items():
        log.info("  %s: %s", category, ", ".join(members))
    missing = set(names) - {m for members in grouping.values() for m in members}
    if missing:
        log.warning("%d folders were not assigned to any category; they will be matched heuristically.", len(missing))
    return grouping


def build_group_prompt(names: List[str], target_count: int, custom_folder_prompt: str = "") -> str:
    extra = f"\n\nAdditional instructions: {custom_folder_prompt.strip()}" if custom_folder_prompt.strip() else ""
    folder_list = "\n".join(names)
    return f"""You are organizing browser bookmarks into a hierarchical structure.
Given these {len(names)} folder names, create exactly {target_count} broad top-level categories.
Each category should be generic enough to accommodate multiple related topics.

Current folders to organize:
{folder_list}

Requirements:
1. Create exactly {target_count} broad, inclusive categories
2. Every folder MUST be assigned to a category
3. Categories should be clear and intuitive for a bookmark hierarchy
4. Avoid overlapping categories
5. Use generic names that can encompass related subcategories
6. Consider common bookmark organization patterns{extra}

Return the result as a JSON object where:
- Keys are the new top-level category names (exactly {target_count})
- Values are arrays of existing folder names that should go under each category
- Every existing folder must be assigned to exactly one category
- Category names should be clear and concise

Example format:
{{
  "Technology & Development": ["Programming", "Web Development", "Software", "Tools"],
  "Business & Work": ["Projects", "Marketing", "Resources", "Professional"],
  "Media & Entertainment": ["Movies", "Music", "Games", "Videos"]
}}"""


def parse_grouping_text(raw_text: str) -> CategoryGrouping:
    content = _FENCE_RE.sub("", raw_text or "").strip()
    if not (content.startswith("{") and content.endswith("}")):
        log.warning("Grouping response does not look like a JSON object; extracting the first {...} block.")
        extracted = _first_balanced_object(content)
        if extracted is None:
            debug_log_response_text(title="Unparseable grouping response", text=raw_text or "")
            raise MalformedResponseError("Unable to extract a JSON object from the grouping response")
        content = extracted

    try:
        payload = CategoryGroupingPayload.model_validate_json(content)
    except ValidationError as e:
        debug_log_response_text(title="Invalid grouping JSON", text=content)
        raise MalformedResponseError(f"Grouping response is not a category -> folders object: {e}") from e

    grouping: CategoryGrouping = {}
    for category, members in payload.root.items():
        name = category.strip()
        if not name:
            continue
        bucket = grouping.setdefault(name, [])
        for m in members:
            m = m.strip()
            if m and m not in bucket:
                bucket.append(m)
    if not grouping:
        raise MalformedResponseError("Grouping response contained no categories")
    return grouping


def _first_balanced_object(text: str) -> Optional[str]:
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None
