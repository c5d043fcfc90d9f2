"""Spells and skills: costs, requirements, cooldowns and damage."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from engine.context import build_damage_context
from engine.dice import DiceRoller, has_dice

if TYPE_CHECKING:
    from models.characters import Character

logger = logging.getLogger(__name__)


class AbilityKind(str, Enum):
    SPELL = "spell"                 # Ignores equipment terms
    SKILL = "skill"


class AbilityTarget(str, Enum):
    ENEMY = "enemy"
    SELF = "self"
    AREA = "area"


class AbilityCost(BaseModel):
    """One resource an ability spends when used."""
    resource: Literal["mana", "stamina", "health"]
    amount: float


class UsabilityFailure(str, Enum):
    RESOURCE_INSUFFICIENT = "resource_insufficient"
    REQUIREMENT_UNMET = "requirement_unmet"
    ON_COOLDOWN = "on_cooldown"


class UsabilityCheck(BaseModel):
    """Whether a character may use an ability right now, and why not."""
    success: bool
    reason: str = ""
    failure: UsabilityFailure | None = None


class CommitResult(BaseModel):
    """What committing an ability spent."""
    resources_spent: dict[str, float] = {}
    cooldown_set: int = 0


class Ability(BaseModel):
    """Immutable ability template shared by every character who knows it.

    Cooldown progress is kept per character in a ``CooldownTable``.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: AbilityKind = AbilityKind.SKILL
    cost: list[AbilityCost] = []
    cooldown: int = 0               # Rounds before it can be used again
    requirements: dict[str, float] = {}  # Attribute -> minimum final value
    damage_formula: str = "0"
    target: AbilityTarget = AbilityTarget.ENEMY
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _fold_cost_shorthand(cls, data: Any) -> Any:
        """Turn ``mana_cost`` / ``stamina_cost`` / ``health_cost`` into ``cost`` entries."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        cost = list(data.get("cost") or [])
        for resource in ("mana", "stamina", "health"):
            amount = data.pop(f"{resource}_cost", None)
            if amount:
                cost.append({"resource": resource, "amount": amount})
        data["cost"] = cost
        return data

    def can_use(self, character: Character, cooldowns: CooldownTable) -> UsabilityCheck:
        """Check resources, then requirements, then cooldown."""
        for cost in self.cost:
            if character.stats.get_resource(cost.resource) < cost.amount:
                return UsabilityCheck(
                    success=False,
                    reason=f"Not enough {cost.resource}",
                    failure=UsabilityFailure.RESOURCE_INSUFFICIENT,
                )

        for attr, minimum in self.requirements.items():
            have = character.stats.get(attr, 0)
            if have < minimum:
                return UsabilityCheck(
                    success=False,
                    reason=f"Requires {attr} {minimum:g} (have {have:g})",
                    failure=UsabilityFailure.REQUIREMENT_UNMET,
                )

        remaining = cooldowns.get(character.id, self.id)
        if remaining > 0:
            return UsabilityCheck(
                success=False,
                reason=f"On cooldown ({remaining} round{'s' if remaining != 1 else ''} left)",
                failure=UsabilityFailure.ON_COOLDOWN,
            )

        return UsabilityCheck(success=True)

    def commit(self, character: Character, cooldowns: CooldownTable) -> CommitResult:
        """Spend the cost and start the cooldown. Does not re-check ``can_use``."""
        spent: dict[str, float] = {}
        for cost in self.cost:
            character.stats.modify_resource(cost.resource, -cost.amount)
            spent[cost.resource] = spent.get(cost.resource, 0) + cost.amount
        if self.cooldown > 0:
            cooldowns.set(character.id, self.id, self.cooldown)
        return CommitResult(resources_spent=spent, cooldown_set=self.cooldown)

    def resolve_damage(
        self,
        caster: Character,
        target: Character | None,
        roller: DiceRoller,
    ) -> int:
        """Roll or evaluate the damage formula for ``caster`` against ``target``.

        Returns:
            Whole damage, never negative.
        """
        formula = (self.damage_formula or "").strip()
        if formula in ("", "0"):
            return 0

        context = build_damage_context(
            caster,
            include_equipment=self.kind != AbilityKind.SPELL,
            target=target,
        ).variables()
        if has_dice(formula):
            total = roller.roll(formula, context).total
        else:
            total = roller.evaluator.evaluate(formula, context)
        return max(0, math.floor(total))


class CooldownTable:
    """Remaining cooldown rounds keyed by ``(character_id, ability_id)``."""

    def __init__(self):
        self._remaining: dict[tuple[str, str], int] = {}

    def get(self, character_id: str, ability_id: str) -> int:
        return self._remaining.get((character_id, ability_id), 0)

    def set(self, character_id: str, ability_id: str, rounds: int) -> None:
        if rounds > 0:
            self._remaining[(character_id, ability_id)] = rounds
        else:
            self._remaining.pop((character_id, ability_id), None)

    def tick_cooldown(self, character_id: str, ability_id: str) -> int:
        """Count one round down for one entry. Returns what is left."""
        remaining = max(0, self.get(character_id, ability_id) - 1)
        self.set(character_id, ability_id, remaining)
        return remaining

    def tick_all(self) -> None:
        """Count one round down for every tracked entry."""
        for character_id, ability_id in list(self._remaining):
            self.tick_cooldown(character_id, ability_id)

    def reset(self) -> None:
        self._remaining.clear()

    def for_character(self, character_id: str) -> dict[str, int]:
        return {
            ability_id: rounds
            for (owner, ability_id), rounds in self._remaining.items()
            if owner == character_id
        }


class AbilityCatalog:
    """Lookup of ability templates by id."""

    def __init__(self, abilities: Iterable[Ability] = ()):
        self._abilities: dict[str, Ability] = {ability.id: ability for ability in abilities}

    @classmethod
    def from_config(
        cls,
        spells: Mapping[str, Mapping[str, Any]],
        skills: Mapping[str, Mapping[str, Any]],
    ) -> AbilityCatalog:
        """Build a catalog from spell and skill definitions keyed by id.

        Invalid entries are logged and left out.
        """
        abilities: list[Ability] = []
        for kind, entries in ((AbilityKind.SPELL, spells), (AbilityKind.SKILL, skills)):
            for ability_id, data in entries.items():
                try:
                    abilities.append(Ability.model_validate({**data, "id": ability_id, "kind": kind}))
                except ValidationError as e:
                    logger.warning("Skipping invalid %s %r: %s", kind.value, ability_id, e)
        return cls(abilities)

    def get(self, ability_id: str) -> Ability | None:
        ability = self._abilities.get(ability_id)
        if ability is None:
            logger.warning("Unknown ability id %r", ability_id)
        return ability

    def for_character(self, character: Character) -> list[Ability]:
        """Templates for every ability the character knows, skipping unknown ids."""
        return [ability for ability in map(self.get, character.abilities) if ability is not None]

    def ids(self) -> list[str]:
        return list(self._abilities)
