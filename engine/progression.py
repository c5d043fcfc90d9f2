"""Player creation, victory rewards, level-ups and the defeat penalty."""

from __future__ import annotations

import logging
import math
from typing import Iterable

from pydantic import BaseModel

from config import DEATH_EXP_PENALTY, EXP_TO_NEXT_GROWTH, PLAYER_NAME, STARTING_GOLD
from engine.content import PLAYER_ABILITIES, PLAYER_BASE_STATS, PLAYER_EQUIPMENT, get_item
from engine.stats import ATTRIBUTES, StatManager
from models.characters import Character, CharacterKind

logger = logging.getLogger(__name__)

# Added to the base stats on every level-up
LEVEL_UP_GAINS: dict[str, float] = {
    "maxHealth": 20,
    "attack": 5,
    "defense": 2,
    "maxMana": 10,
    "maxStamina": 15,
    **{attr: 1 for attr in ATTRIBUTES},
}

# Modifier sources that only last for a fight
TEMPORARY_SOURCE_PREFIXES = ("temp_",)


class RewardSummary(BaseModel):
    """What the player got for winning a battle."""
    exp: int = 0
    gold: int = 0
    levels_gained: int = 0
    new_level: int = 1


class DefeatPenalty(BaseModel):
    exp_lost: int = 0
    modifiers_removed: int = 0


def create_player(name: str = PLAYER_NAME, stats: StatManager | None = None) -> Character:
    """Create a level 1 player with starting gear, abilities and gold.

    Args:
        name: Display name.
        stats: Stat manager owned by surrounding game state, if any.
            A new one with the starting stats is created otherwise.
    """
    player = Character(
        name=name,
        kind=CharacterKind.PLAYER,
        stats=stats or StatManager(PLAYER_BASE_STATS),
        abilities=list(PLAYER_ABILITIES),
        gold=STARTING_GOLD,
    )
    for item_id in PLAYER_EQUIPMENT:
        item = get_item(item_id)
        if item is not None:
            player.equip(item)
    player.stats.restore_resources()
    return player


def level_up(player: Character) -> None:
    """Spend ``exp_to_next`` experience on one level and raise the base stats."""
    player.exp -= player.exp_to_next
    player.level += 1
    player.exp_to_next = math.floor(player.exp_to_next * EXP_TO_NEXT_GROWTH)

    base = player.stats.get_base()
    for key, gain in LEVEL_UP_GAINS.items():
        base[key] = base.get(key, 0) + gain
    player.stats.set_base(base)
    player.stats.restore_resources()
    logger.info("%s reached level %d", player.name, player.level)


def add_exp(player: Character, amount: int) -> int:
    """Add experience and level up as many times as it allows.

    Returns:
        Number of levels gained.
    """
    player.exp += max(0, amount)
    levels = 0
    while player.exp_to_next > 0 and player.exp >= player.exp_to_next:
        level_up(player)
        levels += 1
    return levels


def grant_victory_rewards(player: Character, enemies: Iterable[Character]) -> RewardSummary:
    """Give the player the experience and gold of every defeated enemy."""
    defeated = [enemy for enemy in enemies if not enemy.is_alive]
    exp = sum(enemy.exp_reward for enemy in defeated)
    gold = sum(enemy.gold_reward for enemy in defeated)

    player.gold += gold
    levels = add_exp(player, exp)
    return RewardSummary(exp=exp, gold=gold, levels_gained=levels, new_level=player.level)


def apply_defeat_penalty(player: Character) -> DefeatPenalty:
    """Take a share of experience and respawn the player on their last legs.

    Experience drops by ``floor(18% of exp_to_next)`` (never below 0), health,
    mana and stamina are set to 1, and temporary modifiers are removed.
    """
    penalty = math.floor(player.exp_to_next * DEATH_EXP_PENALTY)
    lost = min(player.exp, penalty)
    player.exp -= lost

    removed = sum(player.stats.remove_modifiers_by_prefix(prefix) for prefix in TEMPORARY_SOURCE_PREFIXES)
    for resource in ("health", "mana", "stamina"):
        player.stats.set_resource(resource, 1)

    return DefeatPenalty(exp_lost=lost, modifiers_removed=removed)
