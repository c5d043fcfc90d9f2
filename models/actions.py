"""Action request/response and attack models for Emberfall."""

from enum import Enum

from pydantic import BaseModel


class ActionType(str, Enum):
    """Actions the player can take on their turn."""
    ATTACK = "attack"
    ABILITY = "ability"             # Use an ability for this action only
    DEFEND = "defend"               # +20% defense until the enemy turn ends
    ESCAPE = "escape"


class ActionRequest(BaseModel):
    """The player's requested action."""
    action_type: ActionType
    ability_id: str | None = None       # For ability actions
    battle_id: str | None = None        # Stale ids are ignored


class AttackSource(str, Enum):
    NATURAL_WEAPON = "natural_weapon"
    EQUIPPED_WEAPON = "equipped_weapon"
    ABILITY = "ability"
    UNARMED = "unarmed"


class Attack(BaseModel):
    """One attack a character makes this turn."""
    source: AttackSource
    name: str
    damage_formula: str
    attack_formula: str | None = None   # Default attack roll when None
    is_main: bool = False
    is_offhand: bool = False
    ability_id: str | None = None


class AttackResult(BaseModel):
    """Outcome of a single attack."""
    attack: Attack
    hit: bool
    critical: bool = False
    fumble: bool = False
    attack_roll: int | float | None = None  # None for abilities (auto-hit)
    natural_roll: int | None = None
    damage: int = 0
    target_health_remaining: float = 0
    defender_defeated: bool = False
    message: str


class ActionResult(BaseModel):
    """The server's response after processing an action."""
    success: bool
    action_type: ActionType
    description: str                    # Human-readable narrative
    log: list[str] = []                 # One line per attack or event, in order
    damage_dealt: int = 0
    damage_taken: int = 0
    battle_status: str | None = None
    round: int | None = None
    error: str | None = None            # If the action was refused
