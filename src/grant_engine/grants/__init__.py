"""Grant variants and the factory that builds them from config."""

from .base import FLAG_SCOPE, BaseGrant, GrantContext
from .characteristic import CharacteristicGrant
from .choice import ChoiceGrant
from .item import ItemGrant
from .resource import ResourceGrant
from .skill import SkillGrant
from .factory import GRANT_TYPES, create_grant, validate_grant_config

__all__ = [
    "FLAG_SCOPE",
    "BaseGrant",
    "GrantContext",
    # Variants
    "CharacteristicGrant",
    "ChoiceGrant",
    "ItemGrant",
    "ResourceGrant",
    "SkillGrant",
    # Factory
    "GRANT_TYPES",
    "create_grant",
    "validate_grant_config",
]
