"""Tests for the document layer: dotted paths, MemoryActor, compendium and event bus."""

import pytest

from grant_engine.state import (
    EventBus,
    EventType,
    MemoryActor,
    MemoryCompendium,
    get_event_bus,
    reset_event_bus,
)
from grant_engine.state.paths import (
    delete_property,
    expand_dotted,
    get_property,
    merge_object,
    set_property,
)

from helpers import AMBIDEXTROUS, LASGUN, run


class TestPaths:
    """Dotted-path helpers."""

    def test_get_nested(self):
        data = {"system": {"wounds": {"max": 12}}}
        assert get_property(data, "system.wounds.max") == 12
        assert get_property(data, "system.fate.max", 0) == 0

    def test_get_list_index(self):
        data = {"entries": [{"name": "Imperium"}]}
        assert get_property(data, "entries.0.name") == "Imperium"
        assert get_property(data, "entries.3.name") is None

    def test_set_creates_intermediates(self):
        data = {}
        set_property(data, "system.characteristics.toughness.advance", 5)
        assert data == {"system": {"characteristics": {"toughness": {"advance": 5}}}}

    def test_set_into_list(self):
        data = {"entries": [{"trained": False}]}
        set_property(data, "entries.0.trained", True)
        assert data["entries"][0]["trained"] is True

    def test_delete(self):
        data = {"a": {"b": 1, "c": 2}}
        assert delete_property(data, "a.b")
        assert not delete_property(data, "a.missing")
        assert data == {"a": {"c": 2}}

    def test_expand_dotted(self):
        assert expand_dotted({"system.quantity": 3, "name": "X"}) == {"system": {"quantity": 3}, "name": "X"}

    def test_merge_object_deep(self):
        target = {"system": {"quantity": 1, "damage": "1d10"}}
        merge_object(target, {"system.quantity": 5})
        assert target == {"system": {"quantity": 5, "damage": "1d10"}}

    def test_merge_replaces_lists(self):
        target = {"tags": [1, 2]}
        merge_object(target, {"tags": [3]})
        assert target["tags"] == [3]


class TestMemoryActor:
    """In-memory actor document."""

    def test_reads(self, actor):
        assert actor.name == "Test Explorer"
        assert actor.id == "actor00000000001"
        assert actor.get("system.wounds.max") == 10
        assert actor.get("system.missing", "x") == "x"

    def test_update(self, actor):
        run(actor.update({"system.wounds.max": 15, "system.fate.value": 3}))
        assert actor.get("system.wounds.max") == 15
        assert actor.get("system.fate.value") == 3
        assert actor.update_count == 1

    def test_update_rejects_other_roots(self, actor):
        with pytest.raises(ValueError):
            run(actor.update({"items": []}))

    def test_create_embedded_assigns_ids(self, actor):
        created = run(actor.create_embedded("Item", [
            {"name": "Ambidextrous", "type": "talent"},
            {"name": "Lasgun", "type": "weapon", "system": {"quantity": 1}},
        ]))
        assert [i.name for i in created] == ["Ambidextrous", "Lasgun"]
        assert all(len(i.id) == 16 for i in created)
        assert len(actor.items) == 2
        assert actor.items.find("weapon", "Lasgun") is created[1]

    def test_create_keeps_free_id(self, actor):
        created = run(actor.create_embedded("Item", [{"_id": "keepme", "name": "A", "type": "talent"}]))
        assert created[0].id == "keepme"

    def test_update_embedded(self, actor):
        item = run(actor.create_embedded("Item", [{"name": "Lasgun", "type": "weapon"}]))[0]
        run(actor.update_embedded("Item", [{"_id": item.id, "system.quantity": 3, "name": "Lasgun (Mk II)"}]))
        assert item.system["quantity"] == 3
        assert item.name == "Lasgun (Mk II)"

    def test_delete_embedded_ignores_unknown(self, actor):
        item = run(actor.create_embedded("Item", [{"name": "A", "type": "talent"}]))[0]
        run(actor.delete_embedded("Item", [item.id, "nope"]))
        assert len(actor.items) == 0

    def test_unsupported_kind(self, actor):
        with pytest.raises(ValueError):
            run(actor.create_embedded("ActiveEffect", [{}]))

    def test_flags(self, actor):
        run(actor.set_flag("rogue-trader", "appliedGrants.origin", {"sourceName": "X"}))
        assert actor.get_flag("rogue-trader", "appliedGrants.origin") == {"sourceName": "X"}
        assert actor.get("flags.rogue-trader.appliedGrants.origin.sourceName") == "X"
        run(actor.unset_flag("rogue-trader", "appliedGrants.origin"))
        assert actor.get_flag("rogue-trader", "appliedGrants.origin") is None

    def test_save_and_load(self, actor, tmp_path):
        path = tmp_path / "actor.json"
        run(actor.update({"system.wounds.max": 14}))
        actor.save(path)
        actor.save(path)
        assert (tmp_path / "actor.json.bak").exists()

        loaded = MemoryActor.load(path)
        assert loaded.id == actor.id
        assert loaded.get("system.wounds.max") == 14


class TestCompendium:
    def test_resolve(self, compendium):
        template = run(compendium.resolve(AMBIDEXTROUS))
        assert template.name == "Ambidextrous"
        assert run(compendium.resolve("Compendium.talents.missing")) is None
        assert run(compendium.resolve("")) is None

    def test_find_uuid(self, compendium):
        assert compendium.find_uuid("lasgun") == LASGUN
        assert compendium.find_uuid("Lasgun", "talent") is None
        assert compendium.find_uuid("Nothing") is None

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "compendium.json"
        path.write_text('{"templates": [{"uuid": "u1", "name": "A", "type": "talent"}]}')
        assert len(MemoryCompendium.load(path)) == 1


class TestEventBus:
    """Notification sink."""

    def test_notify_reaches_listener(self):
        bus = EventBus()
        seen = []
        bus.on(EventType.NOTIFICATION, lambda event: seen.append(event.data["message"]))
        bus.notify("Granted: Ambidextrous", actor_id="a1")
        assert seen == ["Granted: Ambidextrous"]

    def test_failing_listener_is_isolated(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.on(EventType.ERROR, broken)
        bus.on(EventType.ERROR, lambda event: seen.append(event))
        bus.warn("bad")
        assert len(seen) == 1

    def test_off_and_history(self):
        bus = EventBus(history_limit=2)
        handler = lambda event: None  # noqa: E731
        bus.on(EventType.NOTIFICATION, handler)
        bus.on(EventType.NOTIFICATION, handler)
        assert bus.listener_count(EventType.NOTIFICATION) == 1
        bus.off(EventType.NOTIFICATION, handler)
        assert bus.listener_count(EventType.NOTIFICATION) == 0

        for n in range(3):
            bus.notify(f"m{n}")
        assert [e.data["message"] for e in bus.get_history()] == ["m1", "m2"]
        assert bus.get_history(EventType.ERROR) == []

    def test_shared_bus(self):
        reset_event_bus()
        assert get_event_bus() is get_event_bus()
        first = get_event_bus()
        reset_event_bus()
        assert get_event_bus() is not first
