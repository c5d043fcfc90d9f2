"""Server-wide configuration constants for Emberfall Rules Server."""

import os

AFK_TIMEOUT_SECONDS = float(os.environ.get("AFK_TIMEOUT_SECONDS", "15"))  # Idle player gets an auto-attack
ESCAPE_CHANCE = float(os.environ.get("ESCAPE_CHANCE", "0.5"))  # Probability of a successful escape
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

CRITICAL_ROLL = 20               # Natural roll that always hits and doubles damage dice
FUMBLE_ROLL = 1                  # Natural roll that always misses
DEFAULT_ATTACK_FORMULA = "1d20+strengthMod"
NATURAL_WEAPON_DAMAGE = "1d6+strengthMod"
WEAPON_DAMAGE = "1d4"            # Weapon without a damage formula
UNARMED_DAMAGE = "1d4"           # Fists; strength bonus appended when positive
DEFEND_BONUS_RATIO = 0.2         # Defend action: +20% defense for the enemy turn

STARTING_GOLD = 50
STARTING_EXP_TO_NEXT = 50
EXP_TO_NEXT_GROWTH = 1.5
DEATH_EXP_PENALTY = 0.18         # Fraction of exp_to_next lost on defeat

PLAYER_NAME = os.environ.get("PLAYER_NAME", "Hero")
