"""
Pydantic models for the grant engine.

Two kinds of data live here and are kept apart:
- Grant definitions: configuration authored on a source item. Frozen.
- Application records and results: what happened when a grant was applied.

Definitions serialize to the persisted wire format (camelCase, "_id") via
to_config(). Everything else serializes with model_dump(by_alias=True).
"""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class GrantType(str, Enum):
    ITEM = "item"
    SKILL = "skill"
    CHARACTERISTIC = "characteristic"
    RESOURCE = "resource"
    CHOICE = "choice"


def generate_id() -> str:
    """16-character document id."""
    return uuid4().hex[:16]


# -----------------------------------------------------------------------------
# Documents (items and actors)
# -----------------------------------------------------------------------------

class ItemData(BaseModel):
    """Common shape of anything item-like: templates and owned items."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str  # talent, trait, weapon, gear, originPath, ...
    img: str = ""
    system: dict[str, Any] = Field(default_factory=dict)
    flags: dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> str:
        return self.type

    def to_object(self) -> dict[str, Any]:
        """Detached plain-dict copy, safe to mutate."""
        return self.model_dump(by_alias=True, mode="json")


class ItemTemplate(ItemData):
    """A compendium entry addressed by a stable uuid."""
    uuid: str

    def to_object(self) -> dict[str, Any]:
        data = super().to_object()
        data.pop("uuid", None)
        return data


class OwnedItem(ItemData):
    """An item embedded on an actor."""
    id: str = Field(default_factory=generate_id, alias="_id")


class ActorData(BaseModel):
    """Persisted actor document: system data, owned items, flags."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id, alias="_id")
    name: str = "Unnamed"
    type: str = "acolyte"
    system: dict[str, Any] = Field(default_factory=dict)
    items: list[OwnedItem] = Field(default_factory=list)
    flags: dict[str, Any] = Field(default_factory=dict)


# -----------------------------------------------------------------------------
# Grant definitions (immutable configuration)
# -----------------------------------------------------------------------------

class GrantEntry(BaseModel):
    """One sub-entry of a grant. Optional entries may be left unselected."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    optional: bool = False


class ItemEntry(GrantEntry):
    uuid: str = ""
    overrides: dict[str, Any] = Field(default_factory=dict)
    # Set by legacy migration when no stable reference was found
    legacy_name: str | None = Field(default=None, alias="_legacyName")
    legacy_specialization: str | None = Field(default=None, alias="_legacySpecialization")


class SkillEntry(GrantEntry):
    key: str = ""  # Free text: "Common Lore", "commonLore", "common-lore"
    specialization: str = ""
    level: str = "trained"

    @property
    def grant_key(self) -> str:
        """Key used in data.selected and in the applied map."""
        if self.specialization:
            return f"{self.key}:{self.specialization}"
        return self.key


class CharacteristicEntry(GrantEntry):
    key: str = ""
    value: int = 0


class ResourceEntry(GrantEntry):
    type: str = ""
    formula: str | int = "0"  # "5", "1d5+2", "2xTB", "(1-4|=2),(5-7|=3)"


class ChoiceOption(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    label: str = ""
    description: str = ""
    grants: list[dict[str, Any]] = Field(default_factory=list)  # Raw nested configs


class GrantDefinition(BaseModel):
    """Fields shared by every grant variant."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    TYPE: ClassVar[str] = ""

    id: str = Field(default_factory=generate_id, alias="_id")
    type: str
    optional: bool = False
    label: str = ""
    hint: str = ""

    def to_config(self) -> dict[str, Any]:
        """Serialize to the wire format stored on source items."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ItemGrantConfig(GrantDefinition):
    TYPE: ClassVar[str] = GrantType.ITEM.value
    type: Literal["item"] = "item"
    items: list[ItemEntry] = Field(default_factory=list)


class SkillGrantConfig(GrantDefinition):
    TYPE: ClassVar[str] = GrantType.SKILL.value
    type: Literal["skill"] = "skill"
    skills: list[SkillEntry] = Field(default_factory=list)


class CharacteristicGrantConfig(GrantDefinition):
    TYPE: ClassVar[str] = GrantType.CHARACTERISTIC.value
    type: Literal["characteristic"] = "characteristic"
    characteristics: list[CharacteristicEntry] = Field(default_factory=list)


class ResourceGrantConfig(GrantDefinition):
    TYPE: ClassVar[str] = GrantType.RESOURCE.value
    type: Literal["resource"] = "resource"
    resources: list[ResourceEntry] = Field(default_factory=list)


class ChoiceGrantConfig(GrantDefinition):
    TYPE: ClassVar[str] = GrantType.CHOICE.value
    type: Literal["choice"] = "choice"
    count: int = 1
    options: list[ChoiceOption] = Field(default_factory=list)
    allow_duplicates: bool = Field(default=False, alias="allowDuplicates")


# -----------------------------------------------------------------------------
# Options, records and results (mutable, per application)
# -----------------------------------------------------------------------------

class ApplyOptions(BaseModel):
    """
    Options for a grant application run.

    Variants read dry_run, restore and depth. The manager reads the rest.
    """
    dry_run: bool = False
    restore: bool = False
    depth: int = 0
    force: bool = False  # Apply even if the ledger says this source was applied
    save_state: bool = True  # Record top-level applications in the ledger
    reverse_existing: bool = False  # Batch only: reverse the whole ledger first
    selections: dict[str, dict[str, Any]] = Field(default_factory=dict)  # grant id -> data
    rolled_values: dict[str, int] = Field(default_factory=dict)  # resource type -> value


class GrantResult(BaseModel):
    """Outcome of a single variant apply/restore."""
    success: bool = True
    applied: dict[str, Any] = Field(default_factory=dict)
    notifications: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def fail(self, message: str) -> "GrantResult":
        self.errors.append(message)
        self.success = False
        return self


class AppliedGrantRecord(BaseModel):
    """What one grant did, keyed by grant id in the manager's applied state."""
    type: str
    applied: dict[str, Any] = Field(default_factory=dict)


class GrantsApplicationResult(BaseModel):
    """Outcome of applying every grant on one source item."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    source_key: str = Field(default="", alias="sourceKey")
    applied_state: dict[str, AppliedGrantRecord] = Field(default_factory=dict, alias="appliedState")
    notifications: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    skipped: bool = False  # Ledger already had this source
    nested: list["GrantsApplicationResult"] = Field(default_factory=list)


class ReversalResult(BaseModel):
    """Outcome of reversing ledger entries."""
    success: bool = True
    reversed: dict[str, Any] = Field(default_factory=dict)
    notifications: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class BatchApplicationResult(BaseModel):
    """Outcome of applying grants from an ordered list of source items."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    applied_state: dict[str, dict[str, AppliedGrantRecord]] = Field(
        default_factory=dict, alias="appliedState"
    )
    notifications: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    reversed: dict[str, Any] = Field(default_factory=dict)


class AppliedStateEntry(BaseModel):
    """Ledger entry stored in actor flags for one applied source item."""
    model_config = ConfigDict(populate_by_name=True)

    applied_at: datetime = Field(default_factory=datetime.now, alias="appliedAt")
    source_name: str = Field(default="", alias="sourceName")
    source_type: str = Field(default="unknown", alias="sourceType")
    grants: dict[str, AppliedGrantRecord] = Field(default_factory=dict)


# -----------------------------------------------------------------------------
# Summaries (read-only preview)
# -----------------------------------------------------------------------------

class SummaryDetail(BaseModel):
    label: str
    value: str = ""
    optional: bool = False
    error: bool = False
    img: str | None = None


class OptionSummary(BaseModel):
    label: str
    description: str = ""
    grants: list["GrantSummary"] = Field(default_factory=list)


class GrantSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    type: str
    label: str
    icon: str = ""
    hint: str = ""
    optional: bool = False
    details: list[SummaryDetail] = Field(default_factory=list)
    choice_count: int | None = Field(default=None, alias="choiceCount")
    options: list[OptionSummary] | None = None


class ItemGrantsSummary(BaseModel):
    item: str
    grants: list[GrantSummary] = Field(default_factory=list)


OptionSummary.model_rebuild()
GrantsApplicationResult.model_rebuild()
