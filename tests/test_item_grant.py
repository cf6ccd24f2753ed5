"""Tests for item grants."""

from grant_engine.grants import GrantContext, ItemGrant
from grant_engine.state import ApplyOptions, MemoryCompendium

from helpers import (
    AMBIDEXTROUS,
    DARK_SIGHT,
    FORGE_WORLD,
    LASGUN,
    SOUND_CONSTITUTION,
    item_grant,
    run,
    source_item,
)


def make(context, *entries, source=None, **fields):
    config = {"_id": "items", "type": "item", "items": list(entries), **fields}
    return ItemGrant.from_config(config, context, source)


class TestItemApply:
    """Creating owned items from templates."""

    def test_grants_talent(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS})
        result = run(grant.apply(actor))

        assert result.success
        owned = actor.items.find("talent", "Ambidextrous")
        assert owned is not None
        assert result.applied == {AMBIDEXTROUS: owned.id}
        assert result.notifications == ["Granted: Ambidextrous"]

    def test_provenance_flags(self, context, actor):
        origin = source_item("Forge World", [], uuid=FORGE_WORLD)
        grant = make(context, {"uuid": AMBIDEXTROUS}, source=origin)
        run(grant.apply(actor))

        flags = actor.items.find("talent", "Ambidextrous").flags["rogue-trader"]
        assert flags["sourceId"] == AMBIDEXTROUS
        assert flags["grantId"] == "items"
        assert flags["grantType"] == "item"
        assert flags["grantedBy"] == "Forge World"
        assert flags["grantedById"] == FORGE_WORLD
        assert flags["autoGranted"] is True

    def test_overrides_merged(self, context, actor):
        grant = make(context, {"uuid": LASGUN, "overrides": {"system.quantity": 3}})
        run(grant.apply(actor))

        lasgun = actor.items.find("weapon", "Lasgun")
        assert lasgun.system["quantity"] == 3
        assert lasgun.system["damage"] == "1d10+3"

    def test_duplicate_talent_skipped(self, context, actor):
        run(actor.create_embedded("Item", [{"name": "Ambidextrous", "type": "talent"}]))
        result = run(make(context, {"uuid": AMBIDEXTROUS}).apply(actor))

        assert result.success
        assert result.applied == {}
        assert result.notifications == ["Ambidextrous already exists, skipping"]
        assert len(actor.items.of_kind("talent")) == 1

    def test_blank_specialization_matches_missing_one(self, context, actor):
        run(actor.create_embedded("Item", [
            {"name": "Ambidextrous", "type": "talent", "system": {"specialization": ""}},
        ]))
        result = run(make(context, {"uuid": AMBIDEXTROUS}).apply(actor))

        assert result.applied == {}
        assert len(actor.items.of_kind("talent")) == 1

    def test_talent_with_other_specialization_is_not_duplicate(self, actor):
        compendium = MemoryCompendium([
            {"uuid": "t1", "name": "Talented", "type": "talent", "system": {"specialization": "Awareness"}},
        ])
        run(actor.create_embedded("Item", [
            {"name": "Talented", "type": "talent", "system": {"specialization": "Dodge"}},
        ]))
        grant = make(GrantContext(resolver=compendium), {"uuid": "t1"})
        result = run(grant.apply(actor))

        assert "t1" in result.applied
        assert len(actor.items.of_kind("talent")) == 2

    def test_same_template_twice_in_one_grant(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS}, {"uuid": AMBIDEXTROUS})
        result = run(grant.apply(actor))

        assert len(actor.items.of_kind("talent")) == 1
        assert "Ambidextrous already exists, skipping" in result.notifications

    def test_idempotent(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS}, {"uuid": LASGUN})
        run(grant.apply(actor))
        second = run(grant.apply(actor))

        assert second.applied == {}
        assert len(actor.items) == 2

    def test_unknown_reference(self, context, actor):
        result = run(make(context, {"uuid": "Compendium.talents.nope"}).apply(actor))
        assert not result.success
        assert result.errors == ["Could not find item: Compendium.talents.nope"]

    def test_invalid_item_kind(self, context, actor):
        result = run(make(context, {"uuid": FORGE_WORLD}).apply(actor))
        assert not result.success
        assert result.errors == ['Invalid item type "originPath" for Forge World']
        assert len(actor.items) == 0

    def test_failure_does_not_stop_other_entries(self, context, actor):
        grant = make(context, {"uuid": "Compendium.talents.nope"}, {"uuid": DARK_SIGHT})
        result = run(grant.apply(actor))

        assert not result.success
        assert DARK_SIGHT in result.applied

    def test_dry_run_creates_nothing(self, context, actor):
        result = run(make(context, {"uuid": LASGUN}).apply(actor, options=ApplyOptions(dry_run=True)))
        assert result.notifications == ["Would grant: Lasgun"]
        assert result.applied == {}
        assert len(actor.items) == 0

    def test_selection(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS, "optional": True}, {"uuid": LASGUN})
        run(grant.apply(actor, {"selected": [LASGUN]}))
        assert [i.name for i in actor.items] == ["Lasgun"]

    def test_required_entry_left_out(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS}, {"uuid": LASGUN})
        result = run(grant.apply(actor, {"selected": [LASGUN]}))
        assert result.errors == [f"Required item {AMBIDEXTROUS} not selected"]

    def test_legacy_placeholder_skipped(self, context, actor):
        grant = make(context, {"_legacyName": "Old Talent"})
        result = run(grant.apply(actor))
        assert result.success
        assert result.notifications == ['Skipped "Old Talent" - no UUID mapping available']

    def test_no_actor(self, context):
        result = run(make(context, {"uuid": AMBIDEXTROUS}).apply(None))
        assert result.errors == ["No actor provided"]

    def test_empty(self, context, actor):
        result = run(make(context).apply(actor))
        assert result.success
        assert result.notifications == ["Item grant has no items to apply"]


class TestItemReverse:
    """Reverse deletes exactly what was created; restore brings snapshots back."""

    def test_reverse_and_restore(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS}, {"uuid": LASGUN})
        applied = run(grant.apply(actor)).applied

        # Player edits the weapon after it was granted
        lasgun = actor.items.find("weapon", "Lasgun")
        run(actor.update_embedded("Item", [{"_id": lasgun.id, "system.quantity": 4}]))

        restore_data = run(grant.reverse(actor, applied))
        assert len(actor.items) == 0
        assert [s["uuid"] for s in restore_data["items"]] == [AMBIDEXTROUS, LASGUN]

        result = run(grant.restore(actor, restore_data))
        assert result.success
        assert set(result.applied) == {AMBIDEXTROUS, LASGUN}
        assert actor.items.find("weapon", "Lasgun").system["quantity"] == 4
        assert "Restored: Lasgun" in result.notifications

    def test_reverse_ignores_missing(self, context, actor):
        grant = make(context, {"uuid": AMBIDEXTROUS})
        applied = run(grant.apply(actor)).applied
        run(actor.delete_embedded("Item", list(applied.values())))

        assert run(grant.reverse(actor, applied)) == {"items": []}

    def test_reverse_leaves_other_items(self, context, actor):
        run(actor.create_embedded("Item", [{"name": "Sound Constitution", "type": "talent"}]))
        grant = make(context, {"uuid": AMBIDEXTROUS})
        run(grant.reverse(actor, run(grant.apply(actor)).applied))
        assert [i.name for i in actor.items] == ["Sound Constitution"]


class TestItemQueries:
    def test_automatic_value(self, context):
        assert make(context, {"uuid": AMBIDEXTROUS}).get_automatic_value() == {"selected": [AMBIDEXTROUS]}
        assert make(context, {"uuid": AMBIDEXTROUS, "optional": True}).get_automatic_value() is False
        assert make(context, {"uuid": AMBIDEXTROUS}, optional=True).get_automatic_value() is False

    def test_validate(self, context):
        assert make(context, {"uuid": AMBIDEXTROUS}).validate() == []
        assert make(context).validate() == ["Item grant has no items configured"]
        assert make(context, {"_legacyName": "Old"}, {}).validate() == [
            'Item grant entry "Old" has no UUID',
            "Item grant entry missing UUID",
        ]

    def test_summary(self, context):
        grant = make(context, {"uuid": SOUND_CONSTITUTION}, {"uuid": "missing"}, label="Origin Talents")
        summary = run(grant.get_summary())

        assert summary.label == "Origin Talents"
        assert summary.type == "item"
        assert [(d.label, d.value, d.error) for d in summary.details] == [
            ("Sound Constitution", "talent", False),
            ("missing", "Not found", True),
        ]

    def test_default_label(self, context):
        assert make(context).display_label == "Items"

    def test_from_helper_config(self, context):
        grant = ItemGrant.from_config(item_grant(LASGUN, optional=True), context)
        assert grant.items[0].optional
