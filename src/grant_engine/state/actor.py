"""
Actor document abstraction.

The engine only talks to an actor through the ActorDocument protocol, so
the host's document store stays outside this package. MemoryActor is the
in-memory implementation used by tests and the command line.
"""

import copy
import json
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable

from .paths import delete_property, get_property, set_property
from .schema import ActorData, OwnedItem, generate_id

EMBEDDED_ITEM = "Item"


class ItemCollection:
    """Read-only view over an actor's owned items."""

    def __init__(self, items: list[OwnedItem]):
        self._items = items

    def __iter__(self) -> Iterator[OwnedItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> OwnedItem | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def has(self, item_id: str) -> bool:
        return self.get(item_id) is not None

    def of_kind(self, kind: str) -> list[OwnedItem]:
        return [i for i in self._items if i.type == kind]

    def find(self, kind: str, name: str) -> OwnedItem | None:
        return next((i for i in self._items if i.type == kind and i.name == name), None)


@runtime_checkable
class ActorDocument(Protocol):
    """
    What the engine needs from an actor.

    Every mutating call is a coroutine: these are the only places (besides
    dice) where a grant run suspends.
    """

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def items(self) -> ItemCollection: ...

    def get(self, path: str, default: Any = None) -> Any:
        """Read a dotted path such as "system.wounds.max"."""
        ...

    async def update(self, patch: dict[str, Any]) -> None:
        """Write a batch of dotted paths."""
        ...

    async def create_embedded(self, kind: str, data: list[dict]) -> list[OwnedItem]:
        """Create owned entities. Returned in input order with ids assigned."""
        ...

    async def update_embedded(self, kind: str, updates: list[dict]) -> None:
        """Patch owned entities. Each update carries "_id" plus dotted paths."""
        ...

    async def delete_embedded(self, kind: str, ids: list[str]) -> None:
        """Delete owned entities by id. Unknown ids are ignored."""
        ...

    def get_flag(self, scope: str, key: str) -> Any: ...

    async def set_flag(self, scope: str, key: str, value: Any) -> None: ...

    async def unset_flag(self, scope: str, key: str) -> None: ...


class MemoryActor:
    """
    In-memory actor document.

    No persistence of its own; use load()/save() for JSON files.
    """

    def __init__(self, data: ActorData | dict | None = None):
        if data is None:
            data = ActorData()
        elif isinstance(data, dict):
            data = ActorData.model_validate(data)
        self.data = data
        self.update_count = 0  # Number of write calls, for tests

    @property
    def id(self) -> str:
        return self.data.id

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def system(self) -> dict[str, Any]:
        return self.data.system

    @property
    def items(self) -> ItemCollection:
        return ItemCollection(self.data.items)

    def _root(self) -> dict[str, Any]:
        # Shares the underlying dicts so writes land on self.data
        return {
            "id": self.data.id,
            "name": self.data.name,
            "type": self.data.type,
            "system": self.data.system,
            "flags": self.data.flags,
        }

    def get(self, path: str, default: Any = None) -> Any:
        return get_property(self._root(), path, default)

    async def update(self, patch: dict[str, Any]) -> None:
        root = self._root()
        for path, value in patch.items():
            if path == "name":
                self.data.name = value
                continue
            if not path.startswith(("system.", "flags.")):
                raise ValueError(f"Cannot update actor path: {path}")
            set_property(root, path, copy.deepcopy(value))
        self.update_count += 1

    async def create_embedded(self, kind: str, data: list[dict]) -> list[OwnedItem]:
        self._check_kind(kind)
        existing = {i.id for i in self.data.items}
        created = []
        for entry in data:
            entry = copy.deepcopy(entry)
            item_id = entry.pop("_id", None) or entry.pop("id", None)
            if not item_id or item_id in existing:
                item_id = generate_id()
            entry["_id"] = item_id
            item = OwnedItem.model_validate(entry)
            self.data.items.append(item)
            existing.add(item_id)
            created.append(item)
        self.update_count += 1
        return created

    async def update_embedded(self, kind: str, updates: list[dict]) -> None:
        self._check_kind(kind)
        for update in updates:
            update = dict(update)
            item = self.items.get(update.pop("_id", None) or update.pop("id", ""))
            if item is None:
                continue
            for path, value in update.items():
                if path == "name":
                    item.name = value
                elif path.startswith(("system.", "flags.")):
                    root = {"system": item.system, "flags": item.flags}
                    set_property(root, path, copy.deepcopy(value))
                else:
                    raise ValueError(f"Cannot update item path: {path}")
        self.update_count += 1

    async def delete_embedded(self, kind: str, ids: list[str]) -> None:
        self._check_kind(kind)
        doomed = set(ids)
        self.data.items = [i for i in self.data.items if i.id not in doomed]
        self.update_count += 1

    def get_flag(self, scope: str, key: str) -> Any:
        return get_property(self.data.flags.get(scope, {}), key)

    async def set_flag(self, scope: str, key: str, value: Any) -> None:
        scope_data = self.data.flags.setdefault(scope, {})
        set_property(scope_data, key, copy.deepcopy(value))
        self.update_count += 1

    async def unset_flag(self, scope: str, key: str) -> None:
        scope_data = self.data.flags.get(scope)
        if isinstance(scope_data, dict):
            delete_property(scope_data, key)
        self.update_count += 1

    def _check_kind(self, kind: str) -> None:
        if kind != EMBEDDED_ITEM:
            raise ValueError(f"Unsupported embedded kind: {kind}")

    # -- JSON persistence --

    @classmethod
    def load(cls, path: Path | str) -> "MemoryActor":
        """Load an actor from a JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(ActorData.model_validate(data))

    def save(self, path: Path | str) -> None:
        """Write the actor to a JSON file, keeping a .bak of the previous save."""
        target = Path(path)
        if target.exists():
            backup = target.with_suffix(target.suffix + ".bak")
            backup.write_text(target.read_text(encoding="utf-8"), encoding="utf-8")
        target.write_text(self.data.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
