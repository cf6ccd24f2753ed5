"""Tests for choice grants."""

import pytest

from grant_engine.grants import ChoiceGrant
from grant_engine.grants.choice import split_result_key
from grant_engine.state import ApplyOptions

from helpers import AMBIDEXTROUS, characteristic_grant, item_grant, resource_grant, run, skill_grant


def option(label, *grants, description=""):
    return {"label": label, "description": description, "grants": list(grants)}


def make(context, *options, **fields):
    config = {"_id": "choice", "type": "choice", "options": list(options), **fields}
    return ChoiceGrant.from_config(config, context)


@pytest.fixture
def toughness_or_awareness(context):
    return make(
        context,
        option("Hardy", characteristic_grant(_id="hardy", toughness=5)),
        option("Alert", skill_grant({"key": "Awareness"}, _id="alert")),
    )


class TestChoiceApply:
    """Picking options and applying their nested grants."""

    def test_only_picked_option_applies(self, toughness_or_awareness, actor):
        result = run(toughness_or_awareness.apply(actor, {"selected": ["Hardy"]}))

        assert result.success
        assert actor.get("system.characteristics.toughness.advance") == 5
        assert actor.get("system.skills.awareness.trained") is False
        assert result.applied == {
            "selectedOptions": ["Hardy"],
            "grantResults": {
                "Hardy:0": {
                    "type": "characteristic",
                    "applied": {"toughness": {"previousValue": 0, "appliedValue": 5, "newValue": 5}},
                },
            },
        }
        assert result.notifications == ["Selected: Hardy", "Toughness +5"]

    def test_too_few_selections(self, toughness_or_awareness, actor):
        result = run(toughness_or_awareness.apply(actor, {"selected": []}))
        assert not result.success
        assert result.errors == ["Must select 1 options, only 0 selected"]
        assert actor.update_count == 0

    def test_optional_choice_may_be_left(self, context, actor):
        grant = make(context, option("Hardy", characteristic_grant(toughness=5)), optional=True)
        result = run(grant.apply(actor))
        assert result.success
        assert result.applied == {}

    def test_duplicates_rejected(self, context, actor):
        grant = make(context, option("Hardy", characteristic_grant(toughness=5)), option("B"), count=2)
        result = run(grant.apply(actor, {"selected": ["Hardy", "Hardy"]}))
        assert result.errors == ["Duplicate selections not allowed"]
        assert actor.get("system.characteristics.toughness.advance") == 0

    def test_duplicates_allowed(self, context, actor):
        grant = make(context, option("Hardy", characteristic_grant(toughness=5)), count=2, allowDuplicates=True)
        result = run(grant.apply(actor, {"selected": ["Hardy", "Hardy"]}))
        assert result.success
        assert actor.get("system.characteristics.toughness.advance") == 10
        assert list(result.applied["grantResults"]) == ["Hardy:0", "Hardy:0#2"]

    def test_unknown_option(self, toughness_or_awareness, actor):
        result = run(toughness_or_awareness.apply(actor, {"selected": ["Lucky"]}))
        assert not result.success
        assert result.errors == ["Unknown option: Lucky"]
        assert result.applied == {}

    def test_unknown_nested_type(self, context, actor):
        grant = make(context, option("Odd", {"_id": "x", "type": "psychic"}))
        result = run(grant.apply(actor, {"selected": ["Odd"]}))
        assert result.errors == ["Unknown grant type: psychic"]

    def test_nested_data_by_grant_id(self, context, actor):
        grant = make(context, option("Tough", resource_grant({"type": "wounds", "formula": "1d5"}, _id="tough-wounds")))
        data = {"selected": ["Tough"], "subGrants": {"tough-wounds": {"rolledValues": {"wounds": 4}}}}
        result = run(grant.apply(actor, data))

        assert result.success
        assert actor.get("system.wounds.max") == 14

    def test_nested_choice(self, context, actor):
        inner = {
            "_id": "inner",
            "type": "choice",
            "options": [option("Ambi", item_grant(AMBIDEXTROUS, _id="ambi"))],
        }
        grant = make(context, option("Training", inner))
        data = {"selected": ["Training"], "subGrants": {"inner": {"selected": ["Ambi"]}}}
        result = run(grant.apply(actor, data))

        assert result.success
        assert actor.items.find("talent", "Ambidextrous") is not None
        nested = result.applied["grantResults"]["Training:0"]
        assert nested["type"] == "choice"
        assert nested["applied"]["selectedOptions"] == ["Ambi"]

    def test_dry_run_passes_through(self, toughness_or_awareness, actor):
        result = run(toughness_or_awareness.apply(actor, {"selected": ["Alert"]}, ApplyOptions(dry_run=True)))
        assert "Alert:0" in result.applied["grantResults"]
        assert actor.get("system.skills.awareness.trained") is False

    def test_no_options(self, context, actor):
        result = run(make(context).apply(actor, {"selected": ["A"]}))
        assert result.success
        assert result.notifications == ["Choice grant has no options to apply"]


class TestChoiceReverse:
    def test_reverse_and_restore(self, toughness_or_awareness, actor):
        applied = run(toughness_or_awareness.apply(actor, {"selected": ["Hardy"]})).applied

        restore_data = run(toughness_or_awareness.reverse(actor, applied))
        assert actor.get("system.characteristics.toughness.advance") == 0
        assert restore_data["selected"] == ["Hardy"]
        assert restore_data["grantResults"]["Hardy:0"]["type"] == "characteristic"

        result = run(toughness_or_awareness.restore(actor, restore_data))
        assert result.success
        assert actor.get("system.characteristics.toughness.advance") == 5
        assert result.applied["selectedOptions"] == ["Hardy"]
        assert "Hardy:0" in result.applied["grantResults"]

    def test_reverse_every_pass_of_a_repeated_option(self, context, actor):
        grant = make(context, option("Hardy", characteristic_grant(toughness=5)), count=2, allowDuplicates=True)
        applied = run(grant.apply(actor, {"selected": ["Hardy", "Hardy"]})).applied

        restore_data = run(grant.reverse(actor, applied))
        assert actor.get("system.characteristics.toughness.advance") == 0
        assert list(restore_data["grantResults"]) == ["Hardy:0", "Hardy:0#2"]

        run(grant.restore(actor, restore_data))
        assert actor.get("system.characteristics.toughness.advance") == 10

    def test_reverse_skips_renamed_option(self, toughness_or_awareness, actor, caplog):
        applied = {
            "selectedOptions": ["Sturdy"],
            "grantResults": {"Sturdy:0": {"type": "characteristic", "applied": {}}},
        }
        with caplog.at_level("WARNING"):
            restore_data = run(toughness_or_awareness.reverse(actor, applied))
        assert restore_data["grantResults"] == {}
        assert "Sturdy:0" in caplog.text

    def test_restore_reports_missing_option(self, toughness_or_awareness, actor):
        restore_data = {"selected": ["Gone"], "grantResults": {"Gone:0": {"type": "skill", "data": {}}}}
        result = run(toughness_or_awareness.restore(actor, restore_data))
        assert result.errors == ["Cannot restore choice grant Gone:0"]


class TestChoiceQueries:
    def test_never_automatic(self, toughness_or_awareness):
        assert toughness_or_awareness.get_automatic_value() is False

    def test_validate_clean(self, toughness_or_awareness):
        assert toughness_or_awareness.validate() == []

    def test_validate_problems(self, context):
        assert make(context).validate() == [
            "Choice grant has no options",
            "Cannot select 1 from 0 options without duplicates",
        ]
        assert make(context, option("A"), count=0).validate() == ["Choice grant count must be at least 1"]
        assert make(context, option("A"), count=2).validate() == [
            "Cannot select 2 from 1 options without duplicates",
        ]

    def test_validate_nested(self, context):
        grant = make(
            context,
            option("A", {"_id": "x", "type": "psychic"}),
            option("B", characteristic_grant(luck=1)),
        )
        assert grant.validate() == [
            'Unknown grant type "psychic" in option "A"',
            'Option "B": Invalid characteristic key: luck',
        ]

    def test_summary(self, toughness_or_awareness):
        summary = run(toughness_or_awareness.get_summary())

        assert summary.choice_count == 1
        assert [o.label for o in summary.options] == ["Hardy", "Alert"]
        assert summary.options[0].grants[0].details[0].label == "Toughness"
        assert summary.model_dump(by_alias=True)["choiceCount"] == 1


class TestResultKeys:
    def test_split_on_last_colon(self):
        assert split_result_key("Hardy:0") == ("Hardy", 0)
        assert split_result_key("Lore: Imperium:2") == ("Lore: Imperium", 2)

    def test_repeated_pass_suffix(self):
        assert split_result_key("Hardy:0#2") == ("Hardy", 0)
        assert split_result_key("Hardy:0#") is None

    def test_malformed(self):
        assert split_result_key("Hardy") is None
        assert split_result_key("Hardy:x") is None
