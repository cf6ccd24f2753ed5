"""
Reference resolution for item grants.

Item grants point at templates by uuid. The engine resolves them through a
ReferenceResolver; MemoryCompendium is the in-memory implementation.
"""

import json
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from .schema import ItemTemplate


@runtime_checkable
class ReferenceResolver(Protocol):
    """Looks up item templates by stable reference id."""

    async def resolve(self, uuid: str) -> ItemTemplate | None:
        """Return the template, or None if the reference is unknown."""
        ...


class MemoryCompendium:
    """
    In-memory template store.

    Also offers find_uuid() so legacy migration can back-fill references
    from item names.
    """

    def __init__(self, templates: Iterable[ItemTemplate | dict] = ()):
        self.templates: dict[str, ItemTemplate] = {}
        for template in templates:
            self.add(template)

    def add(self, template: ItemTemplate | dict) -> ItemTemplate:
        if isinstance(template, dict):
            template = ItemTemplate.model_validate(template)
        self.templates[template.uuid] = template
        return template

    async def resolve(self, uuid: str) -> ItemTemplate | None:
        if not uuid:
            return None
        return self.templates.get(uuid)

    def find_uuid(self, name: str, kind: str | None = None) -> str | None:
        """Case-insensitive name lookup, optionally restricted to one kind."""
        wanted = name.strip().lower()
        for template in self.templates.values():
            if template.name.lower() != wanted:
                continue
            if kind and template.type != kind:
                continue
            return template.uuid
        return None

    def __len__(self) -> int:
        return len(self.templates)

    @classmethod
    def load(cls, path: Path | str) -> "MemoryCompendium":
        """Load templates from a JSON file holding a list of templates."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("templates", [])
        return cls(data)
