from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "categories.json"


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    description: str
    keywords: tuple[str, ...]


def _load_config(path: Path = CONFIG_PATH) -> dict:
    if not path.exists():
        raise RuntimeError(f"Missing category config: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def _build_categories(raw: list[dict]) -> tuple[CategoryDefinition, ...]:
    definitions: list[CategoryDefinition] = []
    for entry in raw:
        raw_keywords = entry.get("keywords", [])
        if not isinstance(raw_keywords, list):
            raise RuntimeError(f"Category {entry.get('name')!r} keywords must be a list")
        # keep first occurrence order, matching is case-insensitive
        keywords = tuple(dict.fromkeys(str(k).lower() for k in raw_keywords if k))
        if not keywords:
            raise RuntimeError(f"Category {entry.get('name')!r} has no keywords")
        definitions.append(
            CategoryDefinition(
                name=str(entry["name"]),
                description=str(entry.get("description", "")),
                keywords=keywords,
            )
        )
    return tuple(definitions)


def load_categories(path: Path = CONFIG_PATH) -> tuple[CategoryDefinition, ...]:
    return _build_categories(_load_config(path)["CATEGORIES"])


CATEGORIES: tuple[CategoryDefinition, ...] = load_categories()
CATEGORY_NAMES: tuple[str, ...] = tuple(c.name for c in CATEGORIES)
