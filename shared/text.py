# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import re
from typing import Iterable, List, TypeVar

T = TypeVar("T")

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(value: object) -> str:
    return _WHITESPACE.sub(" ", str(value if value is not None else "")).strip()


def safe_excerpt(value: object, max_length: int = 180) -> str:
    """Collapses whitespace and truncates with an ellipsis.

    Empty input renders as a lone ellipsis so previews never show blank.
    """
    clean = collapse_whitespace(value)
    if not clean:
        return "…"
    if len(clean) > max_length:
        return f"{clean[: max_length - 1]}…"
    return clean


def safe_title(value: object, fallback: str = "Echo") -> str:
    clean = str(value if value is not None else "").strip()
    return clean or fallback


def unique(items: Iterable[T]) -> List[T]:
    """Deduplicates while keeping first-seen order."""
    seen = set()
    result: List[T] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def normalize_tags(tags: Iterable[object] | None) -> List[str]:
    if not tags:
        return []
    cleaned = (collapse_whitespace(tag).lower() for tag in tags)
    return unique(tag for tag in cleaned if tag)


def like_pattern(term: str) -> str:
    """Builds a `%term%` pattern with LIKE wildcards escaped (escape char `\\`)."""
    escaped = (
        term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"
