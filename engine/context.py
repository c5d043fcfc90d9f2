"""Damage context: the variables a character exposes to damage and attack formulas."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from pydantic import BaseModel

from engine.stats import calculate_ability_modifier

if TYPE_CHECKING:
    from models.characters import Character


class DamageContext(BaseModel):
    """Everything a formula such as ``(strengthMod+2)d6+weaponWeight`` can read.

    Equipment and target fields stay at their defaults unless requested.
    Only numeric fields reach formulas; see ``variables()``.
    """
    strength: float = 10
    agility: float = 10
    dexterity: float = 10           # Alias of agility
    constitution: float = 10
    intelligence: float = 10
    wisdom: float = 10
    charisma: float = 10

    strengthMod: int = 0
    agilityMod: int = 0
    dexterityMod: int = 0
    constitutionMod: int = 0
    intelligenceMod: int = 0
    wisdomMod: int = 0
    charismaMod: int = 0

    health: float = 0
    maxHealth: float = 0
    mana: float = 0
    maxMana: float = 0
    stamina: float = 0
    maxStamina: float = 0

    armorClass: float = 10
    attack: float = 0
    attackMod: int = 0              # floor((strength - 10) / 4) + 3
    defense: float = 0
    damageReduction: float = 0
    level: int = 1

    # Equipment
    weaponWeight: float = 0
    weaponMaterial: str = "none"
    weaponType: str = "none"
    bootWeight: float = 0
    bootMaterial: str = "none"
    armorWeight: float = 0
    armorType: str = "none"
    offhandWeight: float = 0
    offhandType: str = "none"

    # Target
    targetHealth: float = 0
    targetMaxHealth: float = 0
    targetArmorClass: float = 10
    targetHealthPercent: float = 0

    def variables(self) -> dict[str, int | float]:
        """Numeric fields only, ready for the formula evaluator."""
        return {
            key: value for key, value in self.model_dump().items()
            if isinstance(value, (int, float)) and not isinstance(value, bool)
        }


def build_damage_context(
    character: Character,
    include_equipment: bool = True,
    target: Character | None = None,
) -> DamageContext:
    """Build a damage context from a character's final stats and gear.

    Args:
        character: The attacker or caster.
        include_equipment: Add weapon, boot, armor and off-hand terms.
            Spells leave this off.
        target: Optional defender whose health and armor class are exposed.

    Returns:
        A populated DamageContext.
    """
    stats = character.stats.get_final()
    resources = character.stats.get_resources()

    values: dict = {}
    for attr in ("strength", "agility", "constitution", "intelligence", "wisdom", "charisma"):
        score = stats.get(attr, 10)
        values[attr] = score
        values[f"{attr}Mod"] = calculate_ability_modifier(score)
    values["dexterity"] = values["agility"]
    values["dexterityMod"] = values["agilityMod"]

    values.update(resources)
    for key in ("maxHealth", "maxMana", "maxStamina", "armorClass", "attack", "defense", "damageReduction"):
        values[key] = stats.get(key, 0)
    values["attackMod"] = math.floor((values["strength"] - 10) / 4) + 3
    values["level"] = character.level

    if include_equipment:
        equipment = character.equipment
        weapon = equipment.right_hand
        if weapon is not None:
            values["weaponWeight"] = weapon.weight
            values["weaponMaterial"] = weapon.material
            values["weaponType"] = weapon.weapon_type or "none"
        if equipment.feet is not None:
            values["bootWeight"] = equipment.feet.weight
            values["bootMaterial"] = equipment.feet.material
        if equipment.body is not None:
            values["armorWeight"] = equipment.body.weight
            values["armorType"] = equipment.body.armor_type or "none"
        if equipment.left_hand is not None:
            values["offhandWeight"] = equipment.left_hand.weight
            values["offhandType"] = equipment.left_hand.type.value

    if target is not None:
        target_max = target.max_health
        values["targetHealth"] = target.health
        values["targetMaxHealth"] = target_max
        values["targetArmorClass"] = target.stats.get("armorClass", 10)
        values["targetHealthPercent"] = (target.health / target_max * 100) if target_max else 0

    return DamageContext(**values)
