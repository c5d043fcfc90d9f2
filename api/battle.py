"""Battle start, action submission, state, log and history endpoints."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from engine.bestiary import create_encounter
from engine.combat import BattleOrchestrator
from models.actions import ActionRequest, ActionResult
from models.characters import Character

router = APIRouter()

# Refusal reason -> HTTP status
_REFUSAL_STATUS = {
    "No active battle": 400,
    "It's not your turn": 409,
    "Stale battle reference": 409,
}


class StartBattleRequest(BaseModel):
    """Enemies to fight, by bestiary id."""
    enemy_ids: list[str]
    level: int = 1


def _get_orchestrator(request: Request) -> BattleOrchestrator:
    """Get the battle orchestrator from app state."""
    return request.app.state.orchestrator


def _get_player(request: Request) -> Character:
    return request.app.state.player


@router.post("/start")
async def start_battle(body: StartBattleRequest, request: Request) -> dict:
    """Start a battle against freshly spawned enemies."""
    orchestrator = _get_orchestrator(request)
    if orchestrator.battle is not None and orchestrator.battle.is_active:
        raise HTTPException(status_code=409, detail="A battle is already in progress")

    enemies = create_encounter(body.enemy_ids, body.level)
    if not enemies:
        raise HTTPException(status_code=404, detail="None of the requested enemies exist")

    battle = orchestrator.start_battle(_get_player(request), enemies)
    if battle is None:
        raise HTTPException(status_code=409, detail="Battle could not be started")
    return battle.summary()


@router.post("/action", response_model=ActionResult)
async def submit_action(action: ActionRequest, request: Request) -> ActionResult:
    """Submit the player's action for the current turn."""
    result = _get_orchestrator(request).process_action(action)
    if not result.success:
        raise HTTPException(status_code=_REFUSAL_STATUS.get(result.error, 400), detail=result.error)
    return result


@router.get("/state")
async def get_battle_state(request: Request) -> dict:
    """Current (or most recent) battle, or just the player when idle."""
    orchestrator = _get_orchestrator(request)
    if orchestrator.battle is None:
        return {
            "phase": orchestrator.phase.value,
            "status": None,
            "player": _get_player(request).snapshot(),
        }
    return {
        "phase": orchestrator.phase.value,
        **orchestrator.battle.summary(),
    }


@router.get("/log")
async def get_battle_log(request: Request) -> list[dict]:
    """Log of the current or most recent battle."""
    battle = _get_orchestrator(request).battle
    if battle is None:
        return []
    return [entry.model_dump(mode="json") for entry in battle.event_log]


@router.get("/history")
async def get_battle_history(request: Request) -> list[dict]:
    """Every finished battle, oldest first."""
    return [record.model_dump(mode="json") for record in _get_orchestrator(request).history]
