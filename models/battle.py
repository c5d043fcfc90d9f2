"""Battle state and log models for Emberfall."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from models.characters import Character


class BattleStatus(str, Enum):
    """Possible states for a battle."""
    ACTIVE = "active"
    VICTORY = "victory"
    DEFEAT = "defeat"
    ESCAPED = "escaped"


class Side(str, Enum):
    """Who holds the turn."""
    PLAYER = "player"
    ENEMY = "enemy"


class LogEntry(BaseModel):
    """A line in the battle log."""
    round: int
    message: str
    type: str = "combat"            # "combat", "system", "victory", "defeat", ...
    timestamp: datetime


class Battle(BaseModel):
    """One fight between the player and a group of enemies."""
    battle_id: str = Field(default_factory=lambda: str(uuid4()))
    player: Character
    enemies: list[Character]
    round: int = 1
    turn: Side = Side.PLAYER
    status: BattleStatus = BattleStatus.ACTIVE
    event_log: list[LogEntry] = []
    started_at: datetime
    ended_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == BattleStatus.ACTIVE

    def living_enemies(self) -> list[Character]:
        return [enemy for enemy in self.enemies if enemy.is_alive]

    def summary(self) -> dict:
        """Compact state for API responses and events."""
        return {
            "battle_id": self.battle_id,
            "round": self.round,
            "turn": self.turn.value,
            "status": self.status.value,
            "player": self.player.snapshot(),
            "enemies": [enemy.snapshot() for enemy in self.enemies],
        }


class BattleRecord(BaseModel):
    """An archived battle."""
    battle_id: str
    status: BattleStatus
    rounds: int
    enemies: list[str]              # Enemy names
    log: list[LogEntry]
    started_at: datetime
    ended_at: datetime
    rewards: dict = {}              # exp / gold / levels gained, or the defeat penalty
