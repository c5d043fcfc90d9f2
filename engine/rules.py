"""Combat rules: which attacks a character makes, to-hit rolls, damage."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Mapping

from pydantic import BaseModel

from config import (
    CRITICAL_ROLL,
    DEFAULT_ATTACK_FORMULA,
    FUMBLE_ROLL,
    UNARMED_DAMAGE,
    WEAPON_DAMAGE,
)
from engine.abilities import AbilityCatalog, CommitResult, CooldownTable
from engine.context import build_damage_context
from engine.dice import DiceResult, DiceRoller
from engine.stats import calculate_ability_modifier
from models.actions import Attack, AttackResult, AttackSource
from models.characters import DamageTaken

if TYPE_CHECKING:
    from models.characters import Character

logger = logging.getLogger(__name__)


class AttackPlan(BaseModel):
    """The attacks a character will make this turn, plus notes on skipped ones."""
    attacks: list[Attack] = []
    notes: list[str] = []


class ToHitRoll(BaseModel):
    roll: DiceResult
    hit: bool
    critical: bool = False
    fumble: bool = False


class ResolutionResult(BaseModel):
    """Everything that happened when one character attacked another."""
    log: list[str] = []
    total_damage: int = 0
    defender_defeated: bool = False
    attacks: list[AttackResult] = []
    ability_commit: CommitResult | None = None


def unarmed_damage_formula(strength: float) -> str:
    """``1d4``, plus the strength modifier when it is positive."""
    strength_mod = calculate_ability_modifier(strength)
    return f"{UNARMED_DAMAGE}+{strength_mod}" if strength_mod > 0 else UNARMED_DAMAGE


def apply_damage(character: Character, damage: int) -> DamageTaken:
    """Apply damage to a character through its stat manager.

    Logs the hit, and the defeat when this damage takes the character from
    alive to 0 health.

    Args:
        character: The character taking damage.
        damage: Amount of damage to deal.

    Returns:
        The damage dealt and whether the character died.
    """
    was_alive = character.is_alive
    taken = character.take_damage(damage)
    logger.debug("%s takes %d damage (%s health left)", character.name, taken.damage, taken.health_remaining)
    if was_alive and taken.is_dead:
        logger.info("%s is defeated", character.name)
    return taken


class CombatResolver:
    """Resolves one character's attacks against another.

    Never ends a battle itself; callers check ``defender_defeated``.
    """

    def __init__(self, dice: DiceRoller, abilities: AbilityCatalog, cooldowns: CooldownTable):
        self.dice = dice
        self.abilities = abilities
        self.cooldowns = cooldowns

    def determine_attacks(self, attacker: Character) -> AttackPlan:
        """List the attacks ``attacker`` makes this turn, in resolution order.

        1. Natural weapon if the main hand is empty, else a main-hand weapon.
        2. Off-hand weapon, unless it is a shield or the main hand is two-handed.
        3. The selected ability, if it can be used now.
        4. Unarmed strike if nothing above applies.
        5. An ability alone is followed by a natural or unarmed attack.
        """
        plan = AttackPlan()
        equipment = attacker.equipment
        main = equipment.right_hand
        natural = attacker.natural_weapon

        if main is None and natural is not None:
            plan.attacks.append(self._natural_attack(attacker, is_main=True))
        elif main is not None and main.is_weapon:
            plan.attacks.append(Attack(
                source=AttackSource.EQUIPPED_WEAPON,
                name=main.name,
                damage_formula=main.damage or WEAPON_DAMAGE,
                attack_formula=main.attack_formula,
                is_main=True,
            ))

        offhand = equipment.left_hand
        if (
            offhand is not None
            and offhand.is_weapon
            and not offhand.is_shield
            and not (main is not None and main.is_two_handed)
        ):
            plan.attacks.append(Attack(
                source=AttackSource.EQUIPPED_WEAPON,
                name=offhand.name,
                damage_formula=offhand.damage or WEAPON_DAMAGE,
                attack_formula=offhand.attack_formula,
                is_offhand=True,
            ))

        if attacker.selected_ability:
            ability = self.abilities.get(attacker.selected_ability)
            if ability is None:
                plan.notes.append(f"{attacker.name} does not know '{attacker.selected_ability}'")
            else:
                check = ability.can_use(attacker, self.cooldowns)
                if check.success:
                    plan.attacks.append(Attack(
                        source=AttackSource.ABILITY,
                        name=ability.name,
                        damage_formula=ability.damage_formula,
                        ability_id=ability.id,
                    ))
                else:
                    plan.notes.append(f"{attacker.name} cannot use {ability.name}: {check.reason}")

        if not plan.attacks:
            plan.attacks.append(self._unarmed_attack(attacker, is_main=True))
        elif all(attack.source == AttackSource.ABILITY for attack in plan.attacks):
            if natural is not None:
                plan.attacks.append(self._natural_attack(attacker))
            else:
                plan.attacks.append(self._unarmed_attack(attacker))

        return plan

    @staticmethod
    def _natural_attack(attacker: Character, is_main: bool = False) -> Attack:
        natural = attacker.natural_weapon
        return Attack(
            source=AttackSource.NATURAL_WEAPON,
            name=natural.name,
            damage_formula=natural.damage_formula,
            attack_formula=natural.attack_formula,
            is_main=is_main,
        )

    @staticmethod
    def _unarmed_attack(attacker: Character, is_main: bool = False) -> Attack:
        return Attack(
            source=AttackSource.UNARMED,
            name="Unarmed strike",
            damage_formula=unarmed_damage_formula(attacker.stats.get("strength", 10)),
            is_main=is_main,
        )

    def roll_to_hit(
        self,
        attack: Attack,
        defender: Character,
        context: Mapping[str, Any],
    ) -> ToHitRoll:
        """Natural 20 always hits and crits, natural 1 always misses,
        otherwise the total must reach the defender's armor class.
        """
        result = self.dice.roll(attack.attack_formula or DEFAULT_ATTACK_FORMULA, context)
        natural = result.natural
        if natural == CRITICAL_ROLL:
            return ToHitRoll(roll=result, hit=True, critical=True)
        if natural == FUMBLE_ROLL:
            return ToHitRoll(roll=result, hit=False, fumble=True)
        return ToHitRoll(roll=result, hit=result.total >= defender.stats.get("armorClass", 10))

    def roll_damage(
        self,
        formula: str,
        context: Mapping[str, Any],
        critical: bool = False,
    ) -> int:
        """Roll damage. A critical doubles the dice, not the modifier."""
        result = self.dice.roll(formula, context)
        total = result.total
        if critical:
            total = result.dice_total * 2 + (result.total - result.dice_total)
        return max(0, math.floor(total))

    def resolve_attack(self, attacker: Character, defender: Character, attack: Attack) -> AttackResult:
        """Resolve one attack and apply its damage to ``defender``."""
        if attack.source == AttackSource.ABILITY:
            ability = self.abilities.get(attack.ability_id)
            damage = ability.resolve_damage(attacker, defender, self.dice) if ability else 0
            taken = apply_damage(defender, damage)
            message = f"{attacker.name} uses {attack.name} on {defender.name} for {taken.damage} damage"
            return self._result(attack, defender, taken, message, hit=True)

        context = build_damage_context(attacker, include_equipment=True, target=defender).variables()
        to_hit = self.roll_to_hit(attack, defender, context)
        natural = to_hit.roll.natural

        if not to_hit.hit:
            if to_hit.fumble:
                message = f"{attacker.name} fumbles an attack with {attack.name}"
            else:
                message = f"{attacker.name} misses {defender.name} with {attack.name}"
            return AttackResult(
                attack=attack,
                hit=False,
                fumble=to_hit.fumble,
                attack_roll=to_hit.roll.total,
                natural_roll=natural,
                target_health_remaining=defender.health,
                message=message,
            )

        damage = self.roll_damage(attack.damage_formula, context, critical=to_hit.critical)
        taken = apply_damage(defender, damage)
        if to_hit.critical:
            message = f"Critical hit! {attacker.name} strikes {defender.name} with {attack.name} for {taken.damage} damage"
        else:
            message = f"{attacker.name} hits {defender.name} with {attack.name} for {taken.damage} damage"
        return self._result(
            attack, defender, taken, message,
            hit=True,
            critical=to_hit.critical,
            attack_roll=to_hit.roll.total,
            natural_roll=natural,
        )

    @staticmethod
    def _result(
        attack: Attack,
        defender: Character,
        taken: DamageTaken,
        message: str,
        **fields: Any,
    ) -> AttackResult:
        if taken.is_dead:
            message += f". {defender.name} is defeated!"
        return AttackResult(
            attack=attack,
            damage=taken.damage,
            target_health_remaining=taken.health_remaining,
            defender_defeated=taken.is_dead,
            message=message,
            **fields,
        )

    def resolve_attacks(self, attacker: Character, defender: Character) -> ResolutionResult:
        """Make every attack ``attacker`` has against ``defender``.

        A usable selected ability is paid for before any attack rolls and is
        not refunded if the defender falls first. Stops as soon as the
        defender reaches 0 health.
        """
        plan = self.determine_attacks(attacker)
        outcome = ResolutionResult(log=list(plan.notes))

        for attack in plan.attacks:
            if attack.source == AttackSource.ABILITY:
                ability = self.abilities.get(attack.ability_id)
                if ability is not None:
                    outcome.ability_commit = ability.commit(attacker, self.cooldowns)

        for attack in plan.attacks:
            if not defender.is_alive:
                break
            result = self.resolve_attack(attacker, defender, attack)
            outcome.attacks.append(result)
            outcome.log.append(result.message)
            outcome.total_damage += result.damage
            if result.defender_defeated:
                outcome.defender_defeated = True
                break

        logger.debug(
            "%s dealt %d damage to %s in %d attack(s)",
            attacker.name, outcome.total_damage, defender.name, len(outcome.attacks),
        )
        return outcome
