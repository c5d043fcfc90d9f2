"""Attribute aggregation: base stats, named modifiers, derived stats, resource pools."""

from __future__ import annotations

import logging
import math
from typing import Mapping

logger = logging.getLogger(__name__)

ATTRIBUTES = ("strength", "agility", "constitution", "intelligence", "wisdom", "charisma")
RESOURCES = ("health", "mana", "stamina")

# Flat resource deltas in modifiers raise capacity, not the current value
_RESOURCE_MAXIMUMS = {"health": "maxHealth", "mana": "maxMana", "stamina": "maxStamina"}

DEFAULT_BASE_STATS: dict[str, float] = {
    "strength": 10,
    "agility": 10,
    "constitution": 10,
    "intelligence": 10,
    "wisdom": 10,
    "charisma": 10,
    "maxHealth": 10,
    "maxMana": 0,
    "maxStamina": 10,
    "attack": 0,
    "defense": 0,
    "armorClass": 10,
    "hitChance": 75,
    "critChance": 5,
    "critPower": 150,
    "dodge": 0,
    "blockChance": 0,
    "initiative": 0,
    "damageReduction": 0,
    "healthRegen": 0,
    "manaRegen": 0,
    "staminaRegen": 0,
}

# stat -> (minimum, maximum); None means unbounded on that side
STAT_BOUNDS: dict[str, tuple[float | None, float | None]] = {
    **{attr: (1, None) for attr in ATTRIBUTES},
    "attack": (0, None),
    "defense": (0, None),
    "armorClass": (0, None),
    "hitChance": (5, 95),
    "critChance": (0, 50),
    "critPower": (100, None),
    "dodge": (0, 75),
    "blockChance": (0, 75),
    "damageReduction": (0, 90),
    "maxHealth": (1, None),
    "maxMana": (0, None),
    "maxStamina": (0, None),
    "healthRegen": (0, None),
    "manaRegen": (0, None),
    "staminaRegen": (0, None),
}
RESISTANCE_BOUNDS = (-100, 100)


def calculate_ability_modifier(score: float) -> int:
    """Calculate an attribute modifier using the 5e formula.

    Args:
        score: The attribute score (e.g. 16).

    Returns:
        The modifier (e.g. +3 for score 16).
    """
    return math.floor((score - 10) / 2)


def apply_derived_stats(stats: dict[str, float]) -> dict[str, float]:
    """Add the attribute-driven bonuses to a summed stat mapping (in place)."""
    strength = stats["strength"]
    agility = stats["agility"]
    constitution = stats["constitution"]
    intelligence = stats["intelligence"]
    wisdom = stats["wisdom"]
    agility_mod = calculate_ability_modifier(agility)

    stats["attack"] += calculate_ability_modifier(strength)
    stats["defense"] += calculate_ability_modifier(constitution)

    stats["hitChance"] += agility_mod * 2
    stats["critChance"] += math.floor((agility - 10) / 4)
    stats["dodge"] += agility_mod
    stats["blockChance"] += math.floor((agility - 10) / 4)
    stats["initiative"] += agility_mod

    # Armor class and damage reduction read the defense after its own bonus
    defense = max(0, stats["defense"])
    stats["armorClass"] += agility_mod + math.floor(defense / 15)
    stats["damageReduction"] += math.floor(defense / 3)

    stats["maxHealth"] += constitution - 10
    stats["maxMana"] += (intelligence - 10) * 2 + (wisdom - 10)
    stats["maxStamina"] += agility_mod * 5

    stats["healthRegen"] += 1 + math.floor((constitution - 10) / 10)
    stats["manaRegen"] += 1 + math.floor((wisdom - 10) / 10)
    stats["staminaRegen"] += 3 + math.floor((agility - 10) / 10)
    return stats


def clamp_stats(stats: dict[str, float]) -> dict[str, float]:
    """Clamp every stat to its valid range (in place)."""
    for key, value in stats.items():
        if key in STAT_BOUNDS:
            low, high = STAT_BOUNDS[key]
        elif key.endswith("Resistance"):
            low, high = RESISTANCE_BOUNDS
        else:
            continue
        if low is not None and value < low:
            value = low
        if high is not None and value > high:
            value = high
        stats[key] = value
    return stats


def _numeric_stats(stats: Mapping[str, float]) -> dict[str, float]:
    numeric: dict[str, float] = {}
    for key, value in stats.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning("Ignoring non-numeric value for %s: %r", key, value)
            continue
        numeric[key] = value
    return numeric


def _fold_resource_deltas(deltas: Mapping[str, float]) -> dict[str, float]:
    folded: dict[str, float] = {}
    for key, value in _numeric_stats(deltas).items():
        target = _RESOURCE_MAXIMUMS.get(key, key)
        folded[target] = folded.get(target, 0) + value
    return folded


class StatManager:
    """Owns one character's attributes.

    Base stats plus at most one modifier per source give the final stats,
    which are recomputed on every change. Current health, mana and stamina
    are kept apart from the final stats and clamped to their maxima.
    """

    def __init__(
        self,
        base_stats: Mapping[str, float] | None = None,
        resources: Mapping[str, float] | None = None,
    ):
        self._base: dict[str, float] = {}
        self._modifiers: dict[str, dict[str, float]] = {}
        self._final: dict[str, float] = {}
        self._resources: dict[str, float] = {}
        base_stats = base_stats or {}
        self.set_base(base_stats)
        self.restore_resources()

        # Current values given alongside the base stats seed the pools
        initial = {name: base_stats[name] for name in RESOURCES if name in base_stats}
        initial.update(resources or {})
        for name, value in initial.items():
            self.set_resource(name, value)

    # --- Base stats ---

    def set_base(self, base_stats: Mapping[str, float]) -> None:
        """Replace the base stats (e.g. on level-up).

        Current ``health``/``mana``/``stamina`` values are not stats and are
        ignored here; use the resource methods for them.
        """
        self._base = {
            key: value for key, value in _numeric_stats(base_stats).items()
            if key not in RESOURCES
        }
        self._recalculate()

    def get_base(self) -> dict[str, float]:
        return dict(self._base)

    # --- Modifiers ---

    def add_modifier(self, source: str, deltas: Mapping[str, float]) -> bool:
        """Add or replace the modifier for ``source``.

        Args:
            source: Unique source key, e.g. ``equipment_right_hand``.
            deltas: Stat name -> delta. Flat resource deltas raise the maximum.

        Returns:
            True if a new modifier was added, False if an existing one was
            replaced or the source was invalid.
        """
        if not source or not isinstance(source, str):
            logger.error("Modifier source must be a non-empty string, got %r", source)
            return False

        is_new = source not in self._modifiers
        self._modifiers[source] = _fold_resource_deltas(deltas)
        self._recalculate()
        return is_new

    def remove_modifier(self, source: str) -> bool:
        """Remove the modifier for ``source``. Returns True if one was removed."""
        if self._modifiers.pop(source, None) is None:
            return False
        self._recalculate()
        return True

    def remove_modifiers_by_prefix(self, prefix: str) -> int:
        """Remove every modifier whose source starts with ``prefix``."""
        doomed = [source for source in self._modifiers if source.startswith(prefix)]
        for source in doomed:
            del self._modifiers[source]
        if doomed:
            self._recalculate()
        return len(doomed)

    def has_modifier(self, source: str) -> bool:
        return source in self._modifiers

    def get_modifiers(self) -> list[dict]:
        """Active modifiers as ``{"source", "stats"}`` copies, in insertion order."""
        return [{"source": source, "stats": dict(stats)} for source, stats in self._modifiers.items()]

    def clear_modifiers(self) -> int:
        count = len(self._modifiers)
        self._modifiers.clear()
        self._recalculate()
        return count

    # --- Final stats ---

    def get_final(self) -> dict[str, float]:
        """A copy of the final stats (base + modifiers + derived, clamped)."""
        return dict(self._final)

    def get(self, name: str, default: float = 0) -> float:
        return self._final.get(name, default)

    def _calculate_final(self) -> dict[str, float]:
        result = {**DEFAULT_BASE_STATS, **self._base}
        for deltas in self._modifiers.values():
            for key, value in deltas.items():
                result[key] = result.get(key, 0) + value
        return clamp_stats(apply_derived_stats(result))

    def _recalculate(self) -> None:
        self._final = self._calculate_final()
        self._clamp_resources()

    # --- Resources ---

    def max_resource(self, name: str) -> float:
        return self._final.get(_RESOURCE_MAXIMUMS[name], 0)

    def get_resource(self, name: str) -> float:
        """Current value of ``health``, ``mana`` or ``stamina``, clamped to [0, max]."""
        self._check_resource(name)
        value = min(max(0, self._resources.get(name, 0)), self.max_resource(name))
        self._resources[name] = value
        return value

    def set_resource(self, name: str, value: float) -> float:
        """Set a resource, clamped to [0, max]. Returns the stored value."""
        self._check_resource(name)
        self._resources[name] = min(max(0, value), self.max_resource(name))
        return self._resources[name]

    def modify_resource(self, name: str, delta: float) -> float:
        """Add ``delta`` to a resource, clamped to [0, max]. Returns the new value."""
        return self.set_resource(name, self.get_resource(name) + delta)

    def restore_resources(self) -> None:
        """Fill every resource pool to its maximum."""
        for name in RESOURCES:
            self._resources[name] = self.max_resource(name)

    def get_resources(self) -> dict[str, float]:
        return {name: self.get_resource(name) for name in RESOURCES}

    def _clamp_resources(self) -> None:
        for name in RESOURCES:
            if name in self._resources:
                self._resources[name] = min(max(0, self._resources[name]), self.max_resource(name))

    @staticmethod
    def _check_resource(name: str) -> None:
        if name not in _RESOURCE_MAXIMUMS:
            raise KeyError(f"Unknown resource '{name}'")

    # --- Views ---

    def snapshot(self) -> dict[str, float]:
        """Final stats merged with current resource values, for events and UIs."""
        return {**self._final, **self.get_resources()}
