"""FastAPI app entry point for Emberfall Rules Server."""

import logging
import random

from fastapi import FastAPI

from api.battle import router as battle_router
from api.ws import relay
from api.ws import router as ws_router
from config import LOG_LEVEL
from engine.abilities import CooldownTable
from engine.combat import BattleOrchestrator
from engine.content import default_catalog
from engine.dice import DiceRoller
from engine.events import EventBus
from engine.progression import create_player
from engine.rules import CombatResolver
from engine.timers import AsyncioScheduler, Scheduler

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def create_app(scheduler: Scheduler | None = None, rng: random.Random | None = None) -> FastAPI:
    """Build the app with one player and one battle session.

    Args:
        scheduler: Runs the inactivity timer. Defaults to the asyncio loop.
        rng: Random source shared by dice and escape rolls.
    """
    app = FastAPI(
        title="Emberfall Rules Server",
        description="Turn-based battle rules for the Emberfall RPG",
        version="0.1.0",
    )

    rng = rng or random.Random()
    bus = EventBus()
    bus.subscribe("*", relay)
    resolver = CombatResolver(DiceRoller(rng=rng), default_catalog(), CooldownTable())

    app.state.bus = bus
    app.state.player = create_player()
    app.state.orchestrator = BattleOrchestrator(
        resolver,
        bus,
        scheduler or AsyncioScheduler(),
        rng=rng,
    )

    app.include_router(battle_router, prefix="/battle", tags=["Battle"])
    app.include_router(ws_router, prefix="/battle", tags=["WebSocket"])

    @app.get("/")
    def root() -> dict:
        """Root endpoint returning server info."""
        return {"name": "Emberfall Rules Server", "version": "0.1.0", "status": "running"}

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"healthy": True}

    return app


app = create_app()
