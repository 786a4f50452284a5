"""
FastAPI backend for Lunar Policy Gaming.
Provides REST API endpoints for the facilitator dashboard: game lifecycle, player
resources, infrastructure, contracts, and the version-gated phase/round/end-game controls.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .database import get_db, init_db
from .models import Facilitator, Game as GameModel
from .auth import (
    create_access_token,
    get_current_facilitator,
    hash_password,
    require_game_owner,
    validate_username,
    verify_password,
)

from lunar_policy.config import get_game_settings
from lunar_policy.logging_config import setup_logging
from lunar_policy.engine import PHASE_SETUP
from lunar_policy.engine.actions import (
    Action,
    add_player,
    advance_phase,
    advance_round,
    build_infrastructure,
    create_contract,
    end_contract,
    end_game,
    manual_adjustment,
)
from lunar_policy.engine.definitions import load_infrastructure_definitions
from lunar_policy.engine.errors import SnapshotError, StaleVersionError
from lunar_policy.engine.queries import (
    get_available_actions,
    get_leaderboard,
    is_locked,
    validate_action,
)
from lunar_policy.engine.reducer import apply_action, check_version
from lunar_policy.engine.state import GameState
from lunar_policy.engine.utils import build_dashboard_snapshot, initialize_game_state
from lunar_policy.engine.win_condition import evaluate_winners

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Lunar Policy Gaming API",
    description="Backend API for the Lunar Policy Gaming facilitator dashboard",
    version="1.0.0",
)

# CORS configuration for frontend
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = request.method
    path = request.url.path
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[500] %s %s", method, path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", method, path)
        raise


@app.exception_handler(StaleVersionError)
async def stale_version_handler(request, exc: StaleVersionError):
    """Someone else moved the game on first. The client should refetch and retry."""
    return JSONResponse(status_code=409, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


infra_defs = load_infrastructure_definitions()


# ===== Pydantic Models =====

class RegisterRequest(BaseModel):
    email: str
    username: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class CreateGameRequest(BaseModel):
    name: str


class AddPlayerRequest(BaseModel):
    name: str
    specialization: str


class AdjustRequest(BaseModel):
    ev_change: int = 0
    rep_change: int = 0
    reason: str = "Manual adjustment"


class BuildRequest(BaseModel):
    builder_id: str
    owner_id: str
    infrastructure_type: str  # display type, e.g. "Solar Array"
    location: str | None = None


class ContractRequest(BaseModel):
    party_a_id: str
    party_b_id: str
    ev_from_a_to_b: int = 0
    ev_from_b_to_a: int = 0
    ev_is_per_round: bool = False
    duration_rounds: int | None = None


class EndContractRequest(BaseModel):
    is_broken: bool = False
    reason: str | None = None
    breaker_id: str | None = None


class VersionedRequest(BaseModel):
    current_version: int


class EndGameRequest(BaseModel):
    current_version: int
    force: bool = False
    ev_threshold: int | None = None
    rep_threshold: int | None = None


# ===== Helper Functions =====

def _game_status(state: GameState) -> str:
    if state.ended:
        return "ended"
    if state.phase == PHASE_SETUP:
        return "setup"
    return "active"


def _get_row(game_id: str, db: Session) -> GameModel:
    row = db.query(GameModel).filter(GameModel.id == game_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return row


def _load_state(row: GameModel) -> GameState:
    """Stored state of a game row; a corrupt row is logged and surfaces as a 500."""
    try:
        return GameState.from_json(row.game_state)
    except SnapshotError:
        logger.exception("Stored state for game %s is corrupt", row.id)
        raise


def get_game(game_id: str, db: Session) -> GameState:
    """Load game state from DB; raise 404 if missing."""
    return _load_state(_get_row(game_id, db))


def save_game(game_id: str, expected_version: int, state: GameState, db: Session) -> None:
    """
    Persist state only if the stored version still equals expected_version.
    A concurrent writer that got there first makes the UPDATE match no rows.
    """
    updated = (
        db.query(GameModel)
        .filter(GameModel.id == game_id, GameModel.version == expected_version)
        .update(
            {
                GameModel.game_state: state.to_json(indent=None),
                GameModel.version: state.version,
                GameModel.status: _game_status(state),
                GameModel.updated_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    if updated == 0:
        db.rollback()
        row = _get_row(game_id, db)
        raise StaleVersionError(expected_version, row.version)
    db.commit()


def _do_action(game: GameModel, action: Action, db: Session) -> dict[str, Any]:
    """Validate, apply, and persist an action. Rule violations become 400s."""
    state = _load_state(game)
    # Stale versions are a 409, checked before any rule validation
    check_version(state, action)
    validation = validate_action(state, action, infra_defs)
    if not validation.valid:
        raise HTTPException(status_code=400, detail=validation.error)
    try:
        new_state, events = apply_action(state, action, infra_defs, get_game_settings())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if events:
        save_game(game.id, state.version, new_state, db)
    return {
        "state": new_state.to_dict(),
        "events": [e.to_dict() for e in events],
    }


def _evaluation_for(state: GameState) -> dict[str, Any]:
    """Stored result for ended games; otherwise the automatic (non-forced) evaluation."""
    if state.ended:
        return {
            "winner_player_ids": list(state.winner_player_ids),
            "victory_type": state.victory_type,
            "ended": True,
            "threshold_met": None,
        }
    return evaluate_winners(state.players).to_dict()


@app.on_event("startup")
def on_startup():
    setup_logging()
    init_db()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Lunar Policy Gaming API", "version": "1.0.0"}


# ----- Auth -----

@app.post("/auth/register")
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Register a facilitator with email, username and password."""
    if not validate_username(request.username):
        raise HTTPException(
            status_code=400,
            detail="Username must be 2-32 characters, letters numbers and underscore only",
        )
    if db.query(Facilitator).filter(Facilitator.email == request.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if db.query(Facilitator).filter(Facilitator.username == request.username).first():
        raise HTTPException(status_code=400, detail="Username already taken")
    facilitator_id = str(uuid.uuid4())
    facilitator = Facilitator(
        id=facilitator_id,
        email=request.email,
        username=request.username,
        password_hash=hash_password(request.password),
    )
    db.add(facilitator)
    db.commit()
    logger.info("Registered facilitator %s", request.username)
    token = create_access_token(facilitator)
    return {
        "access_token": token,
        "facilitator": {"id": facilitator_id, "email": facilitator.email, "username": facilitator.username},
    }


@app.post("/auth/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    facilitator = db.query(Facilitator).filter(Facilitator.email == request.email).first()
    if not facilitator or not verify_password(request.password, facilitator.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    token = create_access_token(facilitator)
    return {
        "access_token": token,
        "facilitator": {"id": facilitator.id, "email": facilitator.email, "username": facilitator.username},
    }


@app.get("/auth/me")
def auth_me(facilitator: Facilitator = Depends(get_current_facilitator)):
    return {"id": facilitator.id, "email": facilitator.email, "username": facilitator.username}


# ----- Settings -----

@app.get("/settings")
def get_settings():
    """Win thresholds, tie mode and contract REP adjustments in effect for this process."""
    return get_game_settings().to_dict()


# ----- Games -----

@app.post("/games/create")
def create_game(
    request: CreateGameRequest,
    facilitator: Facilitator = Depends(get_current_facilitator),
    db: Session = Depends(get_db),
):
    """Create a new game in Setup, round 0, version 0."""
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Game name is required")
    game_id = str(uuid.uuid4())
    state = initialize_game_state(game_id)
    row = GameModel(
        id=game_id,
        name=name,
        created_by=facilitator.id,
        status=_game_status(state),
        version=state.version,
        game_state=state.to_json(indent=None),
    )
    db.add(row)
    db.commit()
    logger.info("Game %s (%s) created by %s", game_id, name, facilitator.username)
    return {"game_id": game_id, "name": name, "state": state.to_dict()}


@app.get("/games")
def list_games(
    facilitator: Facilitator = Depends(get_current_facilitator),
    db: Session = Depends(get_db),
):
    """Games created by the current facilitator, newest first."""
    rows = (
        db.query(GameModel)
        .filter(GameModel.created_by == facilitator.id)
        .order_by(GameModel.created_at.desc())
        .all()
    )
    games = []
    for row in rows:
        try:
            state = json.loads(row.game_state)
        except (TypeError, json.JSONDecodeError):
            state = {}
        games.append({
            "id": row.id,
            "name": row.name,
            "status": row.status,
            "version": row.version,
            "round": state.get("round"),
            "phase": state.get("phase"),
            "created_at": row.created_at.isoformat() if row.created_at else None,
        })
    return {"games": games}


@app.delete("/games/{game_id}")
def delete_game(
    game_id: str,
    game: GameModel = Depends(require_game_owner),
    facilitator: Facilitator = Depends(get_current_facilitator),
    db: Session = Depends(get_db),
):
    """Delete a game. Only its creator may delete it."""
    db.delete(game)
    db.commit()
    logger.info("Game %s deleted by %s", game_id, facilitator.username)
    return {"message": f"Game {game_id} deleted"}


@app.get("/games/{game_id}/dashboard")
def get_dashboard(game_id: str, db: Session = Depends(get_db)):
    """
    Everything a polling dashboard needs: the snapshot (round/phase/version/standings),
    the win evaluation, whether controls are locked, and the leaderboard.
    """
    state = get_game(game_id, db)
    evaluation = _evaluation_for(state)
    locked = is_locked(state) or evaluation["ended"]
    return {
        "snapshot": build_dashboard_snapshot(state).to_dict(),
        "evaluation": evaluation,
        "locked": locked,
        "available_actions": [] if locked else get_available_actions(state),
        "leaderboard": get_leaderboard(state.players),
        "infrastructure": [pi.to_dict() for pi in state.infrastructure],
        "contracts": [c.to_dict() for c in state.contracts],
    }


# ----- Players -----

@app.post("/games/{game_id}/players")
def do_add_player(
    game_id: str,
    request: AddPlayerRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    """Add a player (Setup only). They receive starting EV/REP and a starter infrastructure."""
    return _do_action(game, add_player(request.name, request.specialization), db)


@app.post("/games/{game_id}/players/{player_id}/adjust")
def do_adjust(
    game_id: str,
    player_id: str,
    request: AdjustRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    action = manual_adjustment(player_id, request.ev_change, request.rep_change, request.reason)
    return _do_action(game, action, db)


# ----- Infrastructure & contracts -----

@app.post("/games/{game_id}/infrastructure")
def do_build(
    game_id: str,
    request: BuildRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    action = build_infrastructure(
        request.builder_id,
        request.owner_id,
        request.infrastructure_type,
        request.location,
    )
    return _do_action(game, action, db)


@app.post("/games/{game_id}/contracts")
def do_create_contract(
    game_id: str,
    request: ContractRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    action = create_contract(
        request.party_a_id,
        request.party_b_id,
        ev_from_a_to_b=request.ev_from_a_to_b,
        ev_from_b_to_a=request.ev_from_b_to_a,
        ev_is_per_round=request.ev_is_per_round,
        duration_rounds=request.duration_rounds,
    )
    return _do_action(game, action, db)


@app.post("/games/{game_id}/contracts/{contract_id}/end")
def do_end_contract(
    game_id: str,
    contract_id: str,
    request: EndContractRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    action = end_contract(
        contract_id,
        is_broken=request.is_broken,
        reason=request.reason,
        breaker_id=request.breaker_id,
    )
    return _do_action(game, action, db)


# ----- Phase, round and end-game controls (version-gated) -----

@app.post("/games/{game_id}/advance-phase")
def do_advance_phase(
    game_id: str,
    request: VersionedRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    """Move to the next phase. 409 if current_version is stale."""
    return _do_action(game, advance_phase(request.current_version), db)


@app.post("/games/{game_id}/advance-round")
def do_advance_round(
    game_id: str,
    request: VersionedRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    """Settle the round (Operations only) and move to Governance of the next round."""
    return _do_action(game, advance_round(request.current_version), db)


@app.post("/games/{game_id}/end-game")
def do_end_game(
    game_id: str,
    request: EndGameRequest,
    game: GameModel = Depends(require_game_owner),
    db: Session = Depends(get_db),
):
    """
    Declare the game ended if a win condition holds (or force=True ranks everyone).
    Returns ended=False with no change when nothing is decided.
    """
    action = end_game(
        request.current_version,
        force=request.force,
        ev_threshold=request.ev_threshold,
        rep_threshold=request.rep_threshold,
    )
    result = _do_action(game, action, db)
    result["ended"] = result["state"]["ended"]
    return result


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
