"""Documents, schemas and collaborator interfaces for the grant engine."""

from .schema import (
    ActorData,
    AppliedGrantRecord,
    AppliedStateEntry,
    ApplyOptions,
    BatchApplicationResult,
    CharacteristicEntry,
    CharacteristicGrantConfig,
    ChoiceGrantConfig,
    ChoiceOption,
    GrantDefinition,
    GrantResult,
    GrantsApplicationResult,
    GrantSummary,
    GrantType,
    ItemData,
    ItemEntry,
    ItemGrantConfig,
    ItemGrantsSummary,
    ItemTemplate,
    OwnedItem,
    ResourceEntry,
    ResourceGrantConfig,
    ReversalResult,
    SkillEntry,
    SkillGrantConfig,
    SummaryDetail,
    generate_id,
)
from .actor import ActorDocument, ItemCollection, MemoryActor
from .resolver import MemoryCompendium, ReferenceResolver
from .event_bus import EventBus, EventType, GrantEvent, get_event_bus, reset_event_bus

__all__ = [
    # Schema
    "ActorData",
    "AppliedGrantRecord",
    "AppliedStateEntry",
    "ApplyOptions",
    "BatchApplicationResult",
    "CharacteristicEntry",
    "CharacteristicGrantConfig",
    "ChoiceGrantConfig",
    "ChoiceOption",
    "GrantDefinition",
    "GrantResult",
    "GrantsApplicationResult",
    "GrantSummary",
    "GrantType",
    "ItemData",
    "ItemEntry",
    "ItemGrantConfig",
    "ItemGrantsSummary",
    "ItemTemplate",
    "OwnedItem",
    "ResourceEntry",
    "ResourceGrantConfig",
    "ReversalResult",
    "SkillEntry",
    "SkillGrantConfig",
    "SummaryDetail",
    "generate_id",
    # Actor
    "ActorDocument",
    "ItemCollection",
    "MemoryActor",
    # Resolver
    "MemoryCompendium",
    "ReferenceResolver",
    # Event Bus
    "EventBus",
    "EventType",
    "GrantEvent",
    "get_event_bus",
    "reset_event_bus",
]
