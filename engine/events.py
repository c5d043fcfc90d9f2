"""In-process notification bus the rules engine publishes to."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

BATTLE_START = "battle:start"
BATTLE_UPDATE = "battle:update"
BATTLE_END = "battle:end"
BATTLE_VICTORY = "battle:victory"
BATTLE_DEFEAT = "battle:defeat"
BATTLE_ESCAPED = "battle:escaped"
ROUND_START = "combat:roundStart"
AFK_AUTO_ATTACK = "combat:afkAutoAttack"
LOG_BATCH = "log:batch"             # Payload: {"entries": [{"message", "type"}, ...]}
PLAYER_STATS_CHANGED = "player:statsChanged"
ABILITY_COMMITTED = "ability:committed"

Subscriber = Callable[[str, dict[str, Any]], None]


class EventBus:
    """Synchronous publish/subscribe.

    Subscribers run in subscription order. A subscriber that raises is
    logged and skipped; the publisher never sees the error.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, name: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``name`` (``"*"`` for every event).

        Returns:
            A function that removes the subscription.
        """
        self._subscribers[name].append(callback)
        return lambda: self.unsubscribe(name, callback)

    def unsubscribe(self, name: str, callback: Subscriber) -> bool:
        try:
            self._subscribers[name].remove(callback)
        except ValueError:
            return False
        return True

    def publish(self, name: str, payload: dict[str, Any] | None = None) -> None:
        payload = payload or {}
        for callback in [*self._subscribers.get(name, ()), *self._subscribers.get("*", ())]:
            try:
                callback(name, payload)
            except Exception:
                logger.exception("Subscriber %r failed handling %s", callback, name)
