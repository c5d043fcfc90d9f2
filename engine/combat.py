"""Battle orchestration: turns, rounds, inactivity auto-attacks, win conditions."""

from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from config import AFK_TIMEOUT_SECONDS, DEFEND_BONUS_RATIO, ESCAPE_CHANCE
from engine import events
from engine.bestiary import choose_enemy_ability
from engine.dice import RandomSource
from engine.events import EventBus
from engine.progression import apply_defeat_penalty, grant_victory_rewards
from engine.rules import CombatResolver, ResolutionResult
from engine.timers import InactivityTimer, Scheduler
from models.actions import ActionRequest, ActionResult, ActionType
from models.battle import Battle, BattleRecord, BattleStatus, LogEntry, Side
from models.characters import Character

logger = logging.getLogger(__name__)

DEFEND_SOURCE = "temp_defense_buff"


class BattlePhase(str, Enum):
    IDLE = "idle"
    PLAYER_TURN = "player_turn"
    ENEMY_TURN = "enemy_turn"
    RESOLVED = "resolved"


class BattleOrchestrator:
    """Owns the lifecycle of one battle at a time.

    Every collaborator is passed in: the resolver (with its dice, ability
    catalog and cooldown table), the event bus, the scheduler behind the
    inactivity timer and the random source for escape rolls.
    """

    def __init__(
        self,
        resolver: CombatResolver,
        bus: EventBus,
        scheduler: Scheduler,
        rng: RandomSource | None = None,
        afk_timeout: float = AFK_TIMEOUT_SECONDS,
        escape_chance: float = ESCAPE_CHANCE,
        grant_rewards: Callable = grant_victory_rewards,
        apply_penalty: Callable = apply_defeat_penalty,
    ):
        self.resolver = resolver
        self.abilities = resolver.abilities
        self.cooldowns = resolver.cooldowns
        self.bus = bus
        self.rng = rng or random.Random()
        self.escape_chance = escape_chance
        self.grant_rewards = grant_rewards
        self.apply_penalty = apply_penalty
        self.timer = InactivityTimer(scheduler, afk_timeout, self._on_inactivity)

        self.battle: Battle | None = None
        self.phase = BattlePhase.IDLE
        self.history: list[BattleRecord] = []
        self._pending: list[LogEntry] = []
        self._action_start = 0

    # --- Lifecycle ---

    def start_battle(self, player: Character, enemies: list[Character]) -> Battle | None:
        """Begin a battle on round 1 with the player to act.

        Returns:
            The new battle, or None if one is already running or no enemy
            is alive.
        """
        if self.battle is not None and self.battle.is_active:
            logger.warning("Battle %s is still active; not starting another", self.battle.battle_id)
            return None
        if not any(enemy.is_alive for enemy in enemies):
            logger.warning("Refusing to start a battle without a living enemy")
            return None

        self.battle = Battle(player=player, enemies=list(enemies), started_at=datetime.now(timezone.utc))
        self.phase = BattlePhase.PLAYER_TURN
        names = ", ".join(enemy.name for enemy in enemies)
        self._log(f"{player.name} is attacked by {names}!", "system")

        self.bus.publish(events.BATTLE_START, self.battle.summary())
        self.bus.publish(events.ROUND_START, {"battle_id": self.battle.battle_id, "round": 1})
        self._flush()
        self.timer.arm()
        logger.info("Battle %s started: %s vs %s", self.battle.battle_id, player.name, names)
        return self.battle

    @property
    def is_player_turn(self) -> bool:
        return (
            self.battle is not None
            and self.battle.is_active
            and self.phase == BattlePhase.PLAYER_TURN
        )

    # --- Player actions ---

    def process_action(self, request: ActionRequest) -> ActionResult:
        """Dispatch a player action. Stale or out-of-turn actions are ignored."""
        if (
            request.battle_id is not None
            and self.battle is not None
            and request.battle_id != self.battle.battle_id
        ):
            return self._refuse(request.action_type, "Stale battle reference")

        if request.action_type == ActionType.ATTACK:
            return self.player_attack()
        if request.action_type == ActionType.ABILITY:
            return self.use_ability(request.ability_id)
        if request.action_type == ActionType.DEFEND:
            return self.defend()
        return self.try_escape()

    def player_attack(self) -> ActionResult:
        """Attack the first living enemy with everything the player has."""
        refused = self._check_turn(ActionType.ATTACK)
        if refused is not None:
            return refused
        self._begin_action()
        return self._strike(ActionType.ATTACK)

    def use_ability(self, ability_id: str | None) -> ActionResult:
        """Attack with ``ability_id`` selected for this action only.

        An unknown id wastes the turn with a log message.
        """
        refused = self._check_turn(ActionType.ABILITY)
        if refused is not None:
            return refused
        self._begin_action()

        player = self.battle.player
        ability = self.abilities.get(ability_id) if ability_id else None
        if ability is None or ability.id not in player.abilities:
            self._log(f"{player.name} fumbles for an unknown ability '{ability_id}'", "warning")
            return self._after_player_action(ActionType.ABILITY, f"Unknown ability '{ability_id}'")

        previous = player.selected_ability
        player.selected_ability = ability.id
        try:
            return self._strike(ActionType.ABILITY)
        finally:
            player.selected_ability = previous

    def defend(self) -> ActionResult:
        """Brace: +20% defense for the coming enemy turn."""
        refused = self._check_turn(ActionType.DEFEND)
        if refused is not None:
            return refused
        self._begin_action()

        player = self.battle.player
        bonus = math.floor(player.stats.get("defense") * DEFEND_BONUS_RATIO)
        player.stats.add_modifier(DEFEND_SOURCE, {"defense": bonus})
        self._log(f"{player.name} takes a defensive stance (+{bonus} defense)", "combat")
        try:
            damage_taken = self._enemy_turn()
        finally:
            player.stats.remove_modifier(DEFEND_SOURCE)
        return self._conclude_round(ActionType.DEFEND, f"{player.name} defends", damage_taken=damage_taken)

    def try_escape(self) -> ActionResult:
        """Roll to flee. Failure costs the turn."""
        refused = self._check_turn(ActionType.ESCAPE)
        if refused is not None:
            return refused
        self._begin_action()

        player = self.battle.player
        if self.rng.random() < self.escape_chance:
            self._log(f"{player.name} escapes!", "system")
            self._finish(BattleStatus.ESCAPED)
            return self._result(ActionType.ESCAPE, f"{player.name} escaped")

        self._log(f"{player.name} tries to escape but fails", "warning")
        return self._after_player_action(ActionType.ESCAPE, "Escape failed")

    # --- Turn flow ---

    def _strike(self, action_type: ActionType) -> ActionResult:
        battle = self.battle
        target = battle.living_enemies()[0]
        outcome = self.resolver.resolve_attacks(battle.player, target)
        self._log_resolution(outcome)
        if outcome.ability_commit is not None:
            self.bus.publish(events.ABILITY_COMMITTED, {
                "character_id": battle.player.id,
                **outcome.ability_commit.model_dump(),
            })

        description = f"{battle.player.name} attacks {target.name}"
        if not battle.living_enemies():
            self._finish(BattleStatus.VICTORY)
            return self._result(action_type, description, damage_dealt=outcome.total_damage)
        return self._after_player_action(action_type, description, damage_dealt=outcome.total_damage)

    def _after_player_action(
        self,
        action_type: ActionType,
        description: str,
        damage_dealt: int = 0,
    ) -> ActionResult:
        damage_taken = self._enemy_turn()
        return self._conclude_round(action_type, description, damage_dealt, damage_taken)

    def _conclude_round(
        self,
        action_type: ActionType,
        description: str,
        damage_dealt: int = 0,
        damage_taken: int = 0,
    ) -> ActionResult:
        if not self.battle.player.is_alive:
            self._finish(BattleStatus.DEFEAT)
        else:
            self._next_round()
        return self._result(action_type, description, damage_dealt=damage_dealt, damage_taken=damage_taken)

    def _enemy_turn(self) -> int:
        """Every living enemy attacks in order. Stops when the player falls."""
        battle = self.battle
        battle.turn = Side.ENEMY
        self.phase = BattlePhase.ENEMY_TURN

        damage_taken = 0
        for enemy in battle.living_enemies():
            choose_enemy_ability(enemy, self.abilities, self.cooldowns)
            outcome = self.resolver.resolve_attacks(enemy, battle.player)
            self._log_resolution(outcome)
            damage_taken += outcome.total_damage
            if outcome.defender_defeated or not battle.player.is_alive:
                break
        return damage_taken

    def _next_round(self) -> None:
        battle = self.battle
        battle.round += 1
        battle.turn = Side.PLAYER
        self.phase = BattlePhase.PLAYER_TURN
        self.cooldowns.tick_all()
        self.bus.publish(events.ROUND_START, {"battle_id": battle.battle_id, "round": battle.round})
        self._flush()
        self.timer.arm()

    def _finish(self, status: BattleStatus) -> None:
        """Leave the battle: stop the timer, settle rewards or penalty, archive."""
        self.timer.cancel()
        battle = self.battle
        battle.status = status
        battle.ended_at = datetime.now(timezone.utc)
        self.phase = BattlePhase.RESOLVED
        self.cooldowns.reset()

        player = battle.player
        rewards: dict = {}
        if status == BattleStatus.VICTORY:
            summary = self.grant_rewards(player, battle.enemies)
            rewards = summary.model_dump()
            self._log(f"Victory! {player.name} gains {summary.exp} exp and {summary.gold} gold", "victory")
            if summary.levels_gained:
                self._log(f"{player.name} is now level {summary.new_level}", "victory")
            self.bus.publish(events.BATTLE_VICTORY, {"battle_id": battle.battle_id, "rewards": rewards})
        elif status == BattleStatus.DEFEAT:
            penalty = self.apply_penalty(player)
            rewards = penalty.model_dump()
            self._log(f"{player.name} has fallen and lost {penalty.exp_lost} exp", "defeat")
            self.bus.publish(events.BATTLE_DEFEAT, {"battle_id": battle.battle_id, "penalty": rewards})
        else:
            self.bus.publish(events.BATTLE_ESCAPED, {"battle_id": battle.battle_id})

        self.history.append(BattleRecord(
            battle_id=battle.battle_id,
            status=status,
            rounds=battle.round,
            enemies=[enemy.name for enemy in battle.enemies],
            log=list(battle.event_log),
            started_at=battle.started_at,
            ended_at=battle.ended_at,
            rewards=rewards,
        ))
        self._flush()
        self.bus.publish(events.BATTLE_END, {"battle_id": battle.battle_id, "status": status.value})
        self.phase = BattlePhase.IDLE
        logger.info("Battle %s ended: %s after %d round(s)", battle.battle_id, status.value, battle.round)

    def _on_inactivity(self) -> None:
        if not self.is_player_turn:
            logger.debug("Inactivity timeout with no player turn pending; ignored")
            return
        self.bus.publish(events.AFK_AUTO_ATTACK, {
            "battle_id": self.battle.battle_id,
            "round": self.battle.round,
        })
        self._begin_action()
        self._log(f"{self.battle.player.name} hesitates and attacks on instinct", "system")
        self._strike(ActionType.ATTACK)

    # --- Helpers ---

    def _begin_action(self) -> None:
        self.timer.cancel()
        self._action_start = len(self.battle.event_log)

    def _check_turn(self, action_type: ActionType) -> ActionResult | None:
        if self.battle is None or not self.battle.is_active:
            return self._refuse(action_type, "No active battle")
        if self.phase != BattlePhase.PLAYER_TURN:
            return self._refuse(action_type, "It's not your turn")
        return None

    @staticmethod
    def _refuse(action_type: ActionType, reason: str) -> ActionResult:
        logger.debug("Ignoring %s action: %s", action_type.value, reason)
        return ActionResult(success=False, action_type=action_type, description=reason, error=reason)

    def _result(
        self,
        action_type: ActionType,
        description: str,
        damage_dealt: int = 0,
        damage_taken: int = 0,
    ) -> ActionResult:
        battle = self.battle
        return ActionResult(
            success=True,
            action_type=action_type,
            description=description,
            log=[entry.message for entry in battle.event_log[self._action_start:]],
            damage_dealt=damage_dealt,
            damage_taken=damage_taken,
            battle_status=battle.status.value,
            round=battle.round,
        )

    def _log_resolution(self, outcome: ResolutionResult) -> None:
        for line in outcome.log:
            self._log(line, "combat")

    def _log(self, message: str, kind: str = "combat") -> None:
        entry = LogEntry(
            round=self.battle.round,
            message=message,
            type=kind,
            timestamp=datetime.now(timezone.utc),
        )
        self.battle.event_log.append(entry)
        self._pending.append(entry)

    def _flush(self) -> None:
        """Publish pending log lines as one batch, then the current state."""
        if self._pending:
            self.bus.publish(events.LOG_BATCH, {
                "entries": [{"message": entry.message, "type": entry.type} for entry in self._pending],
            })
            self._pending = []
        if self.battle is not None:
            self.bus.publish(events.BATTLE_UPDATE, self.battle.summary())
            self.bus.publish(events.PLAYER_STATS_CHANGED, self.battle.player.snapshot())
