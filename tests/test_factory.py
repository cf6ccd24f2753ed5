"""Tests for the grant factory."""

import pytest
from pydantic import ValidationError

from grant_engine.grants import (
    GRANT_TYPES,
    CharacteristicGrant,
    ChoiceGrant,
    ItemGrant,
    ResourceGrant,
    SkillGrant,
    create_grant,
    validate_grant_config,
)
from grant_engine.state import SkillGrantConfig

from helpers import LASGUN, item_grant, skill_grant


class TestCreateGrant:
    """Type tag to variant."""

    @pytest.mark.parametrize("grant_type,cls", [
        ("item", ItemGrant),
        ("skill", SkillGrant),
        ("characteristic", CharacteristicGrant),
        ("resource", ResourceGrant),
        ("choice", ChoiceGrant),
    ])
    def test_each_type(self, grant_type, cls):
        grant = create_grant({"_id": "g", "type": grant_type})
        assert isinstance(grant, cls)
        assert grant.id == "g"
        assert GRANT_TYPES[grant_type] is cls

    def test_context_and_source_passed(self, context):
        grant = create_grant(item_grant(LASGUN), context, source=None)
        assert grant.context is context

    def test_from_definition(self):
        config = SkillGrantConfig(skills=[{"key": "Awareness"}])
        grant = create_grant(config)
        assert isinstance(grant, SkillGrant)
        assert grant.config is config

    def test_generated_id(self):
        grant = create_grant({"type": "skill"})
        assert len(grant.id) == 16

    def test_unknown_type(self, caplog):
        with caplog.at_level("WARNING"):
            assert create_grant({"type": "psychic"}) is None
        assert 'Unknown grant type "psychic"' in caplog.text

    def test_missing_type(self):
        assert create_grant({"skills": []}) is None
        assert create_grant(None) is None

    def test_bad_shape(self):
        assert create_grant({"type": "choice", "count": "many"}) is None

    def test_definitions_frozen(self):
        grant = create_grant(skill_grant({"key": "Awareness"}))
        with pytest.raises(ValidationError):
            grant.config.optional = True


class TestValidateGrantConfig:
    def test_valid(self):
        assert validate_grant_config(skill_grant({"key": "Awareness"})) == []

    def test_invalid_type(self):
        assert validate_grant_config({"type": "psychic"}) == ["Invalid grant type: psychic"]
        assert validate_grant_config({}) == ["Invalid grant type: None"]

    def test_schema_error(self):
        errors = validate_grant_config({"type": "choice", "count": "many"})
        assert len(errors) == 1
        assert errors[0].startswith("count: ")

    def test_variant_errors(self):
        assert validate_grant_config({"type": "skill"}) == ["Skill grant has no skills configured"]

    def test_round_trip_through_wire_format(self):
        grant = create_grant(skill_grant({"key": "Awareness", "level": "plus10"}, label="Training"))
        config = grant.config.to_config()
        assert config["_id"] == "skills"
        assert config["label"] == "Training"
        assert validate_grant_config(config) == []
