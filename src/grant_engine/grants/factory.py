"""
Grant factory: maps a config's type tag to its variant class.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..state.schema import GrantDefinition, ItemData
from .base import BaseGrant, GrantContext
from .characteristic import CharacteristicGrant
from .choice import ChoiceGrant
from .item import ItemGrant
from .resource import ResourceGrant
from .skill import SkillGrant

logger = logging.getLogger(__name__)

GRANT_TYPES: dict[str, type[BaseGrant]] = {
    ItemGrant.TYPE: ItemGrant,
    SkillGrant.TYPE: SkillGrant,
    CharacteristicGrant.TYPE: CharacteristicGrant,
    ResourceGrant.TYPE: ResourceGrant,
    ChoiceGrant.TYPE: ChoiceGrant,
}


def _type_of(config: GrantDefinition | dict[str, Any] | None) -> str | None:
    if isinstance(config, GrantDefinition):
        return config.type
    if isinstance(config, dict):
        return config.get("type")
    return None


def create_grant(
    config: GrantDefinition | dict[str, Any] | None,
    context: GrantContext | None = None,
    source: ItemData | None = None,
) -> BaseGrant | None:
    """
    Instantiate the variant for a grant config.

    Returns None (and logs) for a missing or unknown type or a config that
    does not fit its variant's schema.
    """
    grant_type = _type_of(config)
    if not grant_type:
        logger.warning(f"Grant config has no type: {config!r}")
        return None

    grant_class = GRANT_TYPES.get(grant_type)
    if grant_class is None:
        logger.warning(f'Unknown grant type "{grant_type}"')
        return None

    try:
        return grant_class.from_config(config, context, source)
    except ValidationError as exc:
        logger.warning(f"Invalid {grant_type} grant config: {exc}")
        return None


def validate_grant_config(config: GrantDefinition | dict[str, Any] | None) -> list[str]:
    """Validation errors for one grant config. Empty when valid."""
    grant_type = _type_of(config)
    grant_class = GRANT_TYPES.get(grant_type or "")
    if grant_class is None:
        return [f"Invalid grant type: {grant_type}"]

    try:
        grant = grant_class.from_config(config)
    except ValidationError as exc:
        return [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]

    return grant.validate()
