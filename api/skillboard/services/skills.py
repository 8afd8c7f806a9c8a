from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

SKILL_NAME_MAX_LENGTH = 100
_WHITESPACE_RE = re.compile(r"\s+")


def clean_skill_name(name: str | None) -> str | None:
    """Trim a free-text skill name, keeping its original case.

    Interior whitespace runs collapse to a single space. Blank input yields None.
    """
    if not isinstance(name, str):
        return None
    cleaned = _WHITESPACE_RE.sub(" ", name).strip()
    return cleaned or None


def skill_key(name: str) -> str:
    """Comparison key shared by the vocabulary's unique index: lower(name)."""
    return name.lower()


def dedupe_skill_names(names: Iterable[str | None]) -> list[str]:
    """Clean names and collapse case variants, keeping the first spelling seen."""
    seen: set[str] = set()
    unique: list[str] = []
    for raw in names:
        cleaned = clean_skill_name(raw)
        if cleaned is None:
            continue
        key = skill_key(cleaned)
        if key in seen:
            continue
        seen.add(key)
        unique.append(cleaned)
    return unique


@dataclass(slots=True)
class SkillSetPlan:
    required: list[str] = field(default_factory=list)
    optional: list[str] = field(default_factory=list)

    @property
    def all_names(self) -> list[str]:
        return [*self.required, *self.optional]


def plan_skill_set(required: Iterable[str | None], optional: Iterable[str | None] = ()) -> SkillSetPlan:
    """Split a skill payload into required and nice-to-have names.

    A name listed in both groups counts as required.
    """
    required_names = dedupe_skill_names(required)
    required_keys = {skill_key(name) for name in required_names}
    optional_names = [name for name in dedupe_skill_names(optional) if skill_key(name) not in required_keys]
    return SkillSetPlan(required=required_names, optional=optional_names)


def find_invalid_skill_names(names: Iterable[str]) -> list[str]:
    return [name for name in names if len(name) > SKILL_NAME_MAX_LENGTH]
