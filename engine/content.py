"""Built-in game content: spells, skills, items, enemies and the starting player."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from engine.abilities import AbilityCatalog
from models.characters import Item

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Abilities
# ---------------------------------------------------------------------------

SPELLS: dict[str, dict] = {
    "fireball": {
        "name": "Fireball",
        "mana_cost": 15,
        "cooldown": 2,
        "requirements": {"intelligence": 12},
        "damage_formula": "(intelligenceMod+2)d6+intelligenceMod",
        "description": "A burst of flame that ignores armor.",
    },
    "frost_bolt": {
        "name": "Frost Bolt",
        "mana_cost": 8,
        "cooldown": 1,
        "damage_formula": "2d4+floor(intelligence/4)",
        "description": "A shard of ice.",
    },
}

SKILLS: dict[str, dict] = {
    "power_strike": {
        "name": "Power Strike",
        "stamina_cost": 10,
        "cooldown": 2,
        "requirements": {"strength": 12},
        "damage_formula": "1d8+strengthMod*2+floor(weaponWeight/2)",
        "description": "A heavy two-handed swing.",
    },
    "whirlwind": {
        "name": "Whirlwind",
        "stamina_cost": 20,
        "cooldown": 3,
        "requirements": {"agility": 12},
        "damage_formula": "2d6+max(strengthMod, agilityMod)",
        "target": "area",
        "description": "Spin and strike everything nearby.",
    },
    "savage_bite": {
        "name": "Savage Bite",
        "stamina_cost": 5,
        "cooldown": 3,
        "damage_formula": "1d8+strengthMod",
        "description": "Beasts go for the throat.",
    },
}


def default_catalog() -> AbilityCatalog:
    """An ability catalog holding every built-in spell and skill."""
    return AbilityCatalog.from_config(SPELLS, SKILLS)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

ITEMS: dict[str, dict] = {
    "short_sword": {
        "name": "Short Sword",
        "type": "weapon",
        "slot": "right_hand",
        "damage": "1d6+strengthMod",
        "weight": 3,
        "material": "iron",
        "weapon_type": "sword",
        "stats": {"attack": 2},
    },
    "dagger": {
        "name": "Dagger",
        "type": "weapon",
        "slot": "right_hand",
        "damage": "1d4+agilityMod",
        "weight": 1,
        "material": "iron",
        "weapon_type": "dagger",
        "stats": {"critChance": 2},
        "properties": ["light"],
    },
    "greataxe": {
        "name": "Greataxe",
        "type": "weapon",
        "slot": "two_handed",
        "damage": "1d12+strengthMod",
        "weight": 7,
        "material": "steel",
        "weapon_type": "axe",
        "stats": {"attack": 4},
        "properties": ["heavy"],
    },
    "wooden_shield": {
        "name": "Wooden Shield",
        "type": "shield",
        "slot": "left_hand",
        "weight": 5,
        "material": "wood",
        "stats": {"defense": 2, "blockChance": 10},
        "properties": ["defensive"],
    },
    "leather_armor": {
        "name": "Leather Armor",
        "type": "armor",
        "slot": "body",
        "weight": 10,
        "material": "leather",
        "armor_type": "light",
        "stats": {"defense": 3, "armorClass": 1},
    },
    "iron_boots": {
        "name": "Iron Boots",
        "type": "boots",
        "slot": "feet",
        "weight": 4,
        "material": "iron",
        "stats": {"defense": 1, "health": 5},
    },
}


def get_item(item_id: str) -> Item | None:
    """Build a fresh Item from the built-in definitions, or None if unknown."""
    data = ITEMS.get(item_id)
    if data is None:
        logger.warning("Unknown item id %r", item_id)
        return None
    try:
        return Item.model_validate({**data, "id": item_id})
    except ValidationError as e:
        logger.warning("Invalid item definition %r: %s", item_id, e)
        return None


# ---------------------------------------------------------------------------
# Enemies
# ---------------------------------------------------------------------------

# health / attack / defense / exp / gold scale with level / base_level
ENEMIES: dict[str, dict] = {
    "goblin": {
        "name": "Goblin",
        "base_level": 1,
        "base_health": 20,
        "base_attack": 4,
        "base_defense": 0,
        "base_exp": 15,
        "base_gold": 6,
        "armor_class": 11,
        "attributes": {"strength": 10, "agility": 14, "constitution": 10},
        "natural_weapon": {"name": "Claws", "damage_formula": "1d4+agilityMod"},
    },
    "wolf": {
        "name": "Wolf",
        "base_level": 2,
        "base_health": 30,
        "base_attack": 6,
        "base_defense": 1,
        "base_exp": 25,
        "base_gold": 0,
        "armor_class": 12,
        "attributes": {"strength": 12, "agility": 15, "constitution": 12},
        "max_stamina": 20,
        "natural_weapon": {"name": "Fangs", "damage_formula": "1d6+strengthMod"},
        "abilities": ["savage_bite"],
    },
    "skeleton": {
        "name": "Skeleton",
        "base_level": 3,
        "base_health": 35,
        "base_attack": 7,
        "base_defense": 2,
        "base_exp": 30,
        "base_gold": 10,
        "armor_class": 13,
        "attributes": {"strength": 12, "agility": 10, "constitution": 14},
        "equipment": ["short_sword"],
    },
    "bandit": {
        "name": "Bandit",
        "base_level": 4,
        "base_health": 45,
        "base_attack": 8,
        "base_defense": 3,
        "base_exp": 40,
        "base_gold": 25,
        "armor_class": 12,
        "attributes": {"strength": 13, "agility": 12, "constitution": 12},
        "max_stamina": 30,
        "equipment": ["short_sword", "leather_armor"],
        "abilities": ["power_strike"],
    },
}

# ---------------------------------------------------------------------------
# Player
# ---------------------------------------------------------------------------

PLAYER_BASE_STATS: dict[str, float] = {
    "strength": 12,
    "agility": 12,
    "constitution": 12,
    "intelligence": 12,
    "wisdom": 10,
    "charisma": 10,
    "maxHealth": 100,
    "maxMana": 30,
    "maxStamina": 50,
    "attack": 5,
    "defense": 2,
    "armorClass": 10,
}
PLAYER_ABILITIES = ["power_strike", "fireball", "frost_bolt"]
PLAYER_EQUIPMENT = ["short_sword", "leather_armor"]
