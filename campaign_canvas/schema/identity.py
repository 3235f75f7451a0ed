"""
Entity identity: persisted server ids versus client-local placeholders.

Every id in a workflow is either ``PersistedId`` (a UUID the server minted) or
``LocalId`` (a placeholder the editor generated before the first save).
Reconciliation code branches on the tagged type rather than re-testing strings.
"""

from __future__ import annotations

import itertools
import re
import time
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from campaign_canvas.schema.models import MessageTemplate

# Version-4 UUID, hyphens optional, any case.
_UUID4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-?[0-9a-f]{4}-?4[0-9a-f]{3}-?[89ab][0-9a-f]{3}-?[0-9a-f]{12}$",
    re.IGNORECASE,
)
_WHITESPACE_RUN = re.compile(r"\s+")
_local_sequence = itertools.count(1)


@dataclass(frozen=True)
class LocalId:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PersistedId:
    value: uuid.UUID

    def __str__(self) -> str:
        return str(self.value)


EntityId = Union[LocalId, PersistedId]


def parse_id(raw: str) -> EntityId:
    """Classify a raw id string."""
    if _UUID4_PATTERN.match(raw):
        return PersistedId(uuid.UUID(raw))
    return LocalId(raw)


def is_persisted_id(raw: Optional[str]) -> bool:
    if raw is None:
        return False
    return isinstance(parse_id(raw), PersistedId)


def persisted_or_none(raw: Optional[str]) -> Optional[str]:
    """Return ``raw`` if it names a persisted entity, otherwise None."""
    if raw is None:
        return None
    entity_id = parse_id(raw)
    if isinstance(entity_id, PersistedId):
        return raw
    return None


def new_local_id(prefix: str = "event") -> LocalId:
    """Placeholder id for an entity the server has not seen yet."""
    return LocalId(f"{prefix}-{int(time.time() * 1000)}-{next(_local_sequence)}")


def create_slug(name: str) -> str:
    """Lowercase ``name`` and collapse whitespace runs to one underscore."""
    return _WHITESPACE_RUN.sub("_", name.strip()).lower()


def find_template(
    templates: Iterable[MessageTemplate],
    *,
    template_id: Optional[str] = None,
    name: Optional[str] = None,
) -> Optional[MessageTemplate]:
    """
    Look up a message template.

    Matching is by id whenever an id is given. Names are compared by slug only
    when no id is available, so two templates whose names collide after
    slugging are never confused once they have been saved.
    """
    templates = list(templates)
    if template_id is not None:
        for template in templates:
            if template.id == template_id:
                return template
        return None

    if name is None:
        return None
    wanted = create_slug(name)
    for template in templates:
        if create_slug(template.template_name) == wanted:
            return template
    return None
