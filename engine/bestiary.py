"""Enemy construction from bestiary entries, and enemy turn AI."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping

from engine.abilities import AbilityCatalog, CooldownTable
from engine.content import ENEMIES, get_item
from engine.stats import StatManager
from models.characters import Character, CharacterKind, NaturalWeapon

logger = logging.getLogger(__name__)


def create_enemy(
    enemy_id: str,
    level: int = 1,
    templates: Mapping[str, dict] = ENEMIES,
) -> Character | None:
    """Create a fresh enemy scaled to ``level``.

    Health, attack, defense and rewards scale with ``level / base_level``
    (floored). Attributes and armor class do not scale.

    Args:
        enemy_id: Bestiary key, e.g. ``"goblin"``.
        level: Target level (at least 1).
        templates: Bestiary entries to read from.

    Returns:
        The enemy at full health, or None if ``enemy_id`` is unknown.
    """
    template = templates.get(enemy_id)
    if template is None:
        logger.warning("Unknown enemy id %r", enemy_id)
        return None

    level = max(1, int(level))
    scale = level / template.get("base_level", 1)

    base_stats = {
        **template.get("attributes", {}),
        "maxHealth": math.floor(template.get("base_health", 20) * scale),
        "attack": math.floor(template.get("base_attack", 5) * scale),
        "defense": math.floor(template.get("base_defense", 0) * scale),
        "armorClass": template.get("armor_class", 10),
        "maxStamina": template.get("max_stamina", 10),
        "maxMana": template.get("max_mana", 0),
    }

    natural = template.get("natural_weapon")
    enemy = Character(
        name=template.get("name", enemy_id),
        kind=CharacterKind.NPC,
        template_id=enemy_id,
        level=level,
        stats=StatManager(base_stats),
        natural_weapon=NaturalWeapon(**natural) if natural else None,
        abilities=list(template.get("abilities", [])),
        exp_reward=math.floor(template.get("base_exp", 10) * scale),
        gold_reward=math.floor(template.get("base_gold", 5) * scale),
    )

    for item_id in template.get("equipment", []):
        item = get_item(item_id)
        if item is not None:
            enemy.equip(item)
    enemy.stats.restore_resources()
    return enemy


def create_encounter(enemy_ids: Iterable[str], level: int = 1) -> list[Character]:
    """Create one enemy per id, skipping unknown ids."""
    enemies = []
    for enemy_id in enemy_ids:
        enemy = create_enemy(enemy_id, level)
        if enemy is not None:
            enemies.append(enemy)
    return enemies


def choose_enemy_ability(
    enemy: Character,
    catalog: AbilityCatalog,
    cooldowns: CooldownTable,
) -> str | None:
    """Enemy AI: select the first known ability that can be used right now.

    Sets ``enemy.selected_ability`` to the choice (or None) and returns it.
    """
    enemy.selected_ability = None
    for ability in catalog.for_character(enemy):
        if ability.can_use(enemy, cooldowns).success:
            enemy.selected_ability = ability.id
            break
    return enemy.selected_ability
