"""Character, item and equipment data models for Emberfall."""

import logging
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from config import DEFAULT_ATTACK_FORMULA, NATURAL_WEAPON_DAMAGE, STARTING_EXP_TO_NEXT
from engine.stats import StatManager

logger = logging.getLogger(__name__)


class ItemType(str, Enum):
    """Kinds of equippable items."""
    WEAPON = "weapon"
    SHIELD = "shield"
    ARMOR = "armor"
    BOOTS = "boots"
    TRINKET = "trinket"


class EquipmentSlot(str, Enum):
    """Slots a character can equip items into."""
    HEAD = "head"
    BODY = "body"
    HANDS = "hands"
    FEET = "feet"
    RIGHT_HAND = "right_hand"       # Main hand
    LEFT_HAND = "left_hand"         # Off hand


TWO_HANDED = "two_handed"           # Item slot for weapons held in both hands


class Item(BaseModel):
    """An equippable item."""
    id: str
    name: str
    type: ItemType
    slot: str                       # EquipmentSlot value or "two_handed"
    damage: str | None = None       # Weapon damage formula, e.g. "1d8+strengthMod"
    attack_formula: str | None = None
    weight: float = 0
    material: str = "none"
    weapon_type: str | None = None  # e.g. "sword", "axe"
    armor_type: str | None = None   # e.g. "light", "heavy"
    stats: dict[str, float] = {}    # Modifier deltas applied while equipped
    properties: list[str] = []

    @property
    def is_weapon(self) -> bool:
        return (
            self.type == ItemType.WEAPON
            or self.weapon_type is not None
            or "weapon" in self.properties
        )

    @property
    def is_shield(self) -> bool:
        return self.type == ItemType.SHIELD or "defensive" in self.properties

    @property
    def is_two_handed(self) -> bool:
        return self.slot == TWO_HANDED


class NaturalWeapon(BaseModel):
    """Claws, fangs, stingers: used when the main hand is empty."""
    name: str = "Natural weapon"
    damage_formula: str = NATURAL_WEAPON_DAMAGE
    attack_formula: str = DEFAULT_ATTACK_FORMULA
    damage_type: str = "slashing"


class Equipment(BaseModel):
    """Items currently worn or held."""
    head: Item | None = None
    body: Item | None = None
    hands: Item | None = None
    feet: Item | None = None
    right_hand: Item | None = None
    left_hand: Item | None = None

    def get(self, slot: EquipmentSlot | str) -> Item | None:
        return getattr(self, EquipmentSlot(slot).value)

    def set(self, slot: EquipmentSlot | str, item: Item | None) -> None:
        setattr(self, EquipmentSlot(slot).value, item)


class CharacterKind(str, Enum):
    PLAYER = "player"
    NPC = "npc"


class DamageTaken(BaseModel):
    """Outcome of applying damage to a character."""
    damage: int
    is_dead: bool
    health_remaining: float


class Character(BaseModel):
    """A player or non-player character.

    Attributes and resource pools live in ``stats`` and are only changed
    through its methods. A player's StatManager may be injected by the
    surrounding game state; NPCs get their own.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    kind: CharacterKind = CharacterKind.NPC
    template_id: str | None = None  # Bestiary entry this NPC was built from
    level: int = 1
    stats: StatManager = Field(default_factory=StatManager, exclude=True)
    equipment: Equipment = Field(default_factory=Equipment)
    natural_weapon: NaturalWeapon | None = None
    abilities: list[str] = []       # Known ability ids
    selected_ability: str | None = None
    exp: int = 0
    exp_to_next: int = STARTING_EXP_TO_NEXT
    gold: int = 0
    exp_reward: int = 0             # Granted to the player when this NPC is defeated
    gold_reward: int = 0

    @property
    def is_player(self) -> bool:
        return self.kind == CharacterKind.PLAYER

    @property
    def health(self) -> float:
        return self.stats.get_resource("health")

    @property
    def max_health(self) -> float:
        return self.stats.max_resource("health")

    @property
    def is_alive(self) -> bool:
        return self.health > 0

    def take_damage(self, damage: int) -> DamageTaken:
        """Reduce health by ``damage`` (never below 0)."""
        damage = max(0, int(damage))
        remaining = self.stats.modify_resource("health", -damage)
        return DamageTaken(damage=damage, is_dead=remaining <= 0, health_remaining=remaining)

    def heal(self, amount: float) -> float:
        """Restore health up to the maximum. Returns the amount actually healed."""
        before = self.health
        return self.stats.modify_resource("health", max(0, amount)) - before

    def equip(self, item: Item, slot: EquipmentSlot | str | None = None) -> bool:
        """Put ``item`` into ``slot`` (default: the item's own slot) and apply its stats.

        Two-handed weapons go to the main hand and empty the off hand.

        Returns:
            False if the slot is blocked by a two-handed weapon.
        """
        target = EquipmentSlot.RIGHT_HAND if item.is_two_handed else EquipmentSlot(slot or item.slot)

        if target == EquipmentSlot.LEFT_HAND:
            main = self.equipment.right_hand
            if main is not None and main.is_two_handed:
                logger.warning("%s cannot equip %s: both hands are in use", self.name, item.name)
                return False

        if item.is_two_handed:
            self.unequip(EquipmentSlot.LEFT_HAND)

        self.equipment.set(target, item)
        self._apply_equipment_modifier(target, item)
        return True

    def unequip(self, slot: EquipmentSlot | str) -> Item | None:
        """Remove whatever is in ``slot`` and its stat modifier."""
        slot = EquipmentSlot(slot)
        item = self.equipment.get(slot)
        if item is None:
            return None
        self.equipment.set(slot, None)
        self._apply_equipment_modifier(slot, None)
        return item

    def _apply_equipment_modifier(self, slot: EquipmentSlot, item: Item | None) -> None:
        source = f"equipment_{slot.value}"
        self.stats.remove_modifier(source)
        if item is not None and item.stats:
            self.stats.add_modifier(source, item.stats)

    def snapshot(self) -> dict:
        """Stats, resources and identity for events and API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "level": self.level,
            "exp": self.exp,
            "exp_to_next": self.exp_to_next,
            "gold": self.gold,
            "is_alive": self.is_alive,
            "selected_ability": self.selected_ability,
            "stats": self.stats.snapshot(),
            "equipment": self.equipment.model_dump(mode="json"),
        }
