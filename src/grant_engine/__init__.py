"""
Grant application engine.

Decides which benefits (items, skills, characteristic advances, pool
resources, player choices) a character receives when a source item is
applied, and undoes and redoes them consistently.
"""

from .config import DEFAULT_CONFIG, EngineConfig, load_config, save_config
from .errors import FormulaError, GrantConfigError, GrantError, SkillResolutionError
from .grants import (
    GRANT_TYPES,
    BaseGrant,
    CharacteristicGrant,
    ChoiceGrant,
    GrantContext,
    ItemGrant,
    ResourceGrant,
    SkillGrant,
    create_grant,
    validate_grant_config,
)
from .manager import GrantsManager
from .migration import migrate_old_grants
from .state import (
    ApplyOptions,
    EventBus,
    EventType,
    GrantResult,
    GrantsApplicationResult,
    ItemTemplate,
    MemoryActor,
    MemoryCompendium,
)
from .tools import ScriptedRandomSource, SeededRandomSource

__version__ = "0.4.0"

__all__ = [
    "DEFAULT_CONFIG",
    "EngineConfig",
    "load_config",
    "save_config",
    "FormulaError",
    "GrantConfigError",
    "GrantError",
    "SkillResolutionError",
    "GRANT_TYPES",
    "BaseGrant",
    "CharacteristicGrant",
    "ChoiceGrant",
    "GrantContext",
    "ItemGrant",
    "ResourceGrant",
    "SkillGrant",
    "create_grant",
    "validate_grant_config",
    "GrantsManager",
    "migrate_old_grants",
    "ApplyOptions",
    "EventBus",
    "EventType",
    "GrantResult",
    "GrantsApplicationResult",
    "ItemTemplate",
    "MemoryActor",
    "MemoryCompendium",
    "ScriptedRandomSource",
    "SeededRandomSource",
]
