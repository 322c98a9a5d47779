"""
Data models for the normalized actor produced by the importer.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field

# Reserved flag namespace for provenance on every produced record
FLAG_NAMESPACE = "ddb-foundry"


class Provenance(BaseModel):
    """Where an imported record came from, for reconciling re-imports."""
    source_id: int | None = None
    ddb_id: int | str | None = None
    imported_at: datetime | None = None


def provenance_flags(
    source_id: int | None,
    ddb_id: int | str | None = None,
    imported_at: datetime | None = None,
    **extra: Any,
) -> dict[str, dict[str, Any]]:
    """Build the reserved flag namespace attached to every produced record."""
    flags = Provenance(source_id=source_id, ddb_id=ddb_id, imported_at=imported_at).model_dump()
    flags.update(extra)
    return {FLAG_NAMESPACE: flags}


class DerivedAbility(BaseModel):
    """Ability score with its modifier and saving-throw proficiency."""
    score: int = Field(ge=1, le=30, description="Final ability score")
    saving_throw_proficient: bool = False

    @computed_field
    @property
    def modifier(self) -> int:
        """Calculate ability modifier."""
        return (self.score - 10) // 2

    def save_bonus(self, proficiency_bonus: int) -> int:
        """Saving throw bonus; the proficiency bonus only applies when proficient."""
        if self.saving_throw_proficient:
            return self.modifier + proficiency_bonus
        return self.modifier


class ClassSummary(BaseModel):
    """One class entry of a (possibly multiclassed) character."""
    name: str
    level: int = Field(ge=1, le=20)
    hit_die: int = 8
    subclass: str | None = None


class ClassLevels(BaseModel):
    """Level-derived values resolved from the character's classes."""
    total_level: int = 0
    proficiency_bonus: int = 2
    primary_class: str | None = None
    classes: list[ClassSummary] = Field(default_factory=list)
    spellcasting_class: str | None = None
    spellcasting_ability: str | None = None
    spell_slots: dict[int, int] = Field(
        default_factory=dict,
        description="Spell level → slots for the spellcasting class"
    )
    slot_tables: dict[str, dict[int, int]] = Field(
        default_factory=dict,
        description="Class name → slot table, for every class with a specified progression"
    )
    slots_specified: bool = Field(
        default=False,
        description="Whether spell_slots comes from a specified progression table"
    )


class ModifierSets(BaseModel):
    """Proficiencies, damage traits, and languages granted by modifiers."""
    skills: list[str] = Field(default_factory=list)
    expertise: list[str] = Field(default_factory=list)
    saving_throws: list[str] = Field(default_factory=list)
    weapons: list[str] = Field(default_factory=list)
    armor: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    resistances: list[str] = Field(default_factory=list)
    immunities: list[str] = Field(default_factory=list)
    vulnerabilities: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)


class FeatureSource(str, Enum):
    """Where a feature was granted from."""
    CLASS = "class"
    SUBCLASS = "subclass"
    RACE = "race"
    BACKGROUND = "background"
    FEAT = "feat"
    OPTIONAL = "optional"


class FeatureRecord(BaseModel):
    """Structured class/race/background/feat feature."""
    name: str
    description: str = ""
    source: FeatureSource
    source_name: str  # e.g., "Ranger Level 1", "Wood Elf", "Outlander"
    min_level: int = 1
    requirements: str = ""
    flags: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.name, self.source.value, self.source_name)


class SpellComponents(BaseModel):
    verbal: bool = False
    somatic: bool = False
    material: bool = False
    ritual: bool = False
    concentration: bool = False


class SpellDuration(BaseModel):
    value: int | None = None
    units: str = "inst"


class SpellRange(BaseModel):
    value: int | None = None
    units: str = "ft"
    aoe_type: str | None = None
    aoe_value: int | None = None


class SpellActivation(BaseModel):
    type: str = "action"
    cost: int = 1
    condition: str = ""


class SpellScaling(BaseModel):
    mode: str = "none"  # none, cantrip, level
    formula: str = ""
    higher_level: str = ""


class SpellRecord(BaseModel):
    """Normalized spell."""
    name: str
    level: int = Field(ge=0, le=9)
    school: str
    components: SpellComponents = Field(default_factory=SpellComponents)
    materials: str = ""
    duration: SpellDuration = Field(default_factory=SpellDuration)
    range: SpellRange = Field(default_factory=SpellRange)
    activation: SpellActivation = Field(default_factory=SpellActivation)
    scaling: SpellScaling = Field(default_factory=SpellScaling)
    description: str = ""
    prepared: bool = False
    preparation_mode: str = "prepared"
    uses_spell_slot: bool = True
    source_list: str = "class"
    flags: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @computed_field
    @property
    def slot_cost(self) -> int:
        """Number of spell slots one casting consumes."""
        return 1 if self.uses_spell_slot else 0


class ItemCategory(str, Enum):
    WEAPON = "weapon"
    ARMOR = "armor"
    CONSUMABLE = "consumable"
    TOOL = "tool"
    CONTAINER = "container"
    LOOT = "loot"


class ItemRecord(BaseModel):
    """Inventory item."""
    name: str
    category: ItemCategory = ItemCategory.LOOT
    filter_type: str | None = None
    description: str = ""
    quantity: int = 1
    weight: float = Field(default=0.0, description="Weight of one unit (weight × weightMultiplier)")
    total_weight: float = 0.0
    cost: float = 0.0  # gp
    rarity: str = "common"
    equipped: bool = False
    attuned: bool = False
    flags: dict[str, dict[str, Any]] = Field(default_factory=dict)


class Encumbrance(BaseModel):
    value: float = 0.0
    max: float = 0.0
    pct: float = 0.0
    encumbered: bool = False


class EquipmentResult(BaseModel):
    """Classified inventory with its weight totals."""
    items: list[ItemRecord] = Field(default_factory=list)
    encumbrance: Encumbrance = Field(default_factory=Encumbrance)


class HitPoints(BaseModel):
    value: int = 0
    max: int = 0
    temp: int = 0


class ActorAttributes(BaseModel):
    hp: HitPoints = Field(default_factory=HitPoints)
    ac: int | None = None
    init: int = 0
    movement_walk: int = 30
    prof: int = 2
    spellcasting: str | None = None
    spell_dc: int | None = None
    spell_attack: int | None = None
    encumbrance: Encumbrance = Field(default_factory=Encumbrance)


class ActorDetails(BaseModel):
    race: str = ""
    background: str = ""
    alignment: str = ""
    level: int = 0
    primary_class: str | None = None
    classes: list[ClassSummary] = Field(default_factory=list)
    xp: int = 0
    biography: str = ""
    trait: str = ""
    ideal: str = ""
    bond: str = ""
    flaw: str = ""


class SkillRecord(BaseModel):
    value: int = 0  # 0 = not proficient, 1 = proficient, 2 = expertise
    ability: str
    total: int = 0


class ActorTraits(BaseModel):
    size: str = "med"
    languages: list[str] = Field(default_factory=list)
    weapon_prof: list[str] = Field(default_factory=list)
    armor_prof: list[str] = Field(default_factory=list)
    tool_prof: list[str] = Field(default_factory=list)
    dr: list[str] = Field(default_factory=list)  # damage resistances
    di: list[str] = Field(default_factory=list)  # damage immunities
    dv: list[str] = Field(default_factory=list)  # damage vulnerabilities


class Currency(BaseModel):
    pp: int = 0
    gp: int = 0
    ep: int = 0
    sp: int = 0
    cp: int = 0


class NormalizedActor(BaseModel):
    """Complete imported actor."""
    name: str
    type: str = "character"
    abilities: dict[str, DerivedAbility]
    attributes: ActorAttributes = Field(default_factory=ActorAttributes)
    details: ActorDetails = Field(default_factory=ActorDetails)
    skills: dict[str, SkillRecord] = Field(default_factory=dict)
    traits: ActorTraits = Field(default_factory=ActorTraits)
    currency: Currency = Field(default_factory=Currency)
    spell_slots: dict[int, int] = Field(default_factory=dict)
    spells: list[SpellRecord] = Field(default_factory=list)
    spells_by_level: dict[int, list[str]] = Field(default_factory=dict)
    features: list[FeatureRecord] = Field(default_factory=list)
    items: list[ItemRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    flags: dict[str, dict[str, Any]] = Field(default_factory=dict)

    def data_view(self) -> dict[str, Any]:
        """Dump the actor without provenance flags.

        Two imports of the same source data produce equal data views even
        though their import timestamps differ.
        """
        return _strip_flags(self.model_dump(mode="json"))


def _strip_flags(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _strip_flags(v) for k, v in value.items() if k != "flags"}
    if isinstance(value, list):
        return [_strip_flags(v) for v in value]
    return value
