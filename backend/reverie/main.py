# backend/reverie/main.py
import asyncio
import contextlib
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy import select

from . import __version__
from .config import ServerConfig, SimulationConfig
from .db import create_tables, make_engine, make_session_factory
from .engine.creatures import CreatureRegistry
from .engine.engine import SimulationEngine
from .engine.errors import NotFoundError
from .engine.loader import SqlCharacterStore, SqlSceneRepository, seed_world
from .models import Character
from .schemas import (
    CancelMoveMessage,
    IdentifyMessage,
    IntentMessage,
    MoveToMessage,
    TravelMessage,
    parse_inbound,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - Create tables.
    - Seed starter scenes and characters if the tables are empty.
    - Load the creature registry.
    - Start a single SimulationEngine with its three tick loops.
    """
    server_config: ServerConfig = app.state.server_config
    simulation_config: SimulationConfig = app.state.simulation_config

    # Startup
    # 1) Create tables
    db_engine = make_engine(server_config.database_url)
    await create_tables(db_engine)
    session_factory = make_session_factory(db_engine)

    # 2) Seed content
    async with session_factory() as session:
        await seed_world(session, server_config.world_data_dir)

    # 3) Creature registry
    registry = CreatureRegistry.from_yaml(server_config.world_data_dir / "creatures.yaml")

    # 4) Create and start the simulation
    engine_instance = SimulationEngine(
        simulation_config,
        registry,
        SqlCharacterStore(session_factory),
        SqlSceneRepository(session_factory),
    )
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory
    app.state.simulation_engine = engine_instance
    await engine_instance.start()

    yield

    # Shutdown
    await engine_instance.stop()
    await db_engine.dispose()
    logger.info("Simulation engine stopped")


router = APIRouter()


def get_simulation_engine(request: Request) -> SimulationEngine:
    """Helper to retrieve the running SimulationEngine from app.state."""
    engine_instance: Optional[SimulationEngine] = getattr(
        request.app.state, "simulation_engine", None
    )
    if engine_instance is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Simulation engine not initialized",
        )
    return engine_instance


# ---------- HTTP Endpoints ----------

@router.get("/")
async def root():
    return {"message": "Reverie simulation core", "version": __version__}


@router.get("/characters")
async def list_characters(request: Request):
    async with request.app.state.session_factory() as session:
        result = await session.execute(select(Character).order_by(Character.name))
        characters = result.scalars().all()
    return [
        {"id": c.id, "name": c.name, "scene_x": c.scene_x, "scene_y": c.scene_y}
        for c in characters
    ]


@router.get("/scenes/{scene_id}/creatures")
async def scene_creatures(scene_id: str, request: Request):
    engine_instance = get_simulation_engine(request)
    try:
        return engine_instance.scene_creatures(scene_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


# ---------- WebSocket ----------

@router.websocket("/ws/game")
async def game_ws(websocket: WebSocket) -> None:
    """
    Game WebSocket endpoint.

    - client connects: /ws/game
    - client sends: {"type": "identify", "character_id": "..."}
    - client sends: intent / move_to / cancel_move / travel messages
    - server sends: self_state, snapshot, creature lifecycle, scene events

    Single process, many sessions: one SimulationEngine shared by all connections.
    """
    await websocket.accept()
    engine_instance: Optional[SimulationEngine] = getattr(
        websocket.app.state, "simulation_engine", None
    )
    if engine_instance is None:
        logger.error("Simulation engine not initialized")
        await websocket.close(code=1011, reason="Simulation engine not ready")
        return

    session_id, event_queue = engine_instance.register_session()
    logger.info("Session %s connected via WebSocket", session_id)

    send_task = asyncio.create_task(_ws_sender(websocket, event_queue))
    recv_task = asyncio.create_task(_ws_receiver(websocket, engine_instance, session_id))

    try:
        done, pending = await asyncio.wait(
            {send_task, recv_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        # If either sender or receiver stops, cancel the other
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    finally:
        engine_instance.disconnect(session_id)


async def handle_message(engine: SimulationEngine, session_id: str, raw: str) -> None:
    """
    Decode, validate and route one client message.

    Malformed JSON and malformed identify messages are answered with a
    scene_error. Other malformed messages are dropped.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        engine.event_dispatcher.dispatch(
            [engine.event_dispatcher.scene_error(session_id, "Malformed message.")]
        )
        return

    try:
        msg = parse_inbound(data)
    except ValidationError as exc:
        msg_type = data.get("type") if isinstance(data, dict) else None
        if msg_type == "identify":
            engine.event_dispatcher.dispatch(
                [engine.event_dispatcher.scene_error(session_id, "Malformed identify message.")]
            )
        else:
            logger.debug("Dropping invalid %r message from %s: %s", msg_type, session_id, exc)
        return

    if isinstance(msg, IdentifyMessage):
        await engine.identify(session_id, msg.character_id)
    elif isinstance(msg, IntentMessage):
        engine.submit_manual_intent(session_id, msg.thrust, msg.heading)
    elif isinstance(msg, MoveToMessage):
        engine.submit_move_to(session_id, msg.x, msg.y)
    elif isinstance(msg, CancelMoveMessage):
        engine.cancel_move(session_id)
    elif isinstance(msg, TravelMessage):
        await engine.travel(session_id, msg.direction)


async def _ws_receiver(
    websocket: WebSocket,
    engine: SimulationEngine,
    session_id: str,
) -> None:
    """
    Receives messages from the client and forwards them to the engine.
    """
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_message(engine, session_id, raw)
    except WebSocketDisconnect:
        # Normal disconnect; let game_ws handle cleanup
        logger.info("WebSocketDisconnect for session %s", session_id)
    except Exception:
        logger.exception("Error in _ws_receiver for session %s", session_id)


async def _ws_sender(
    websocket: WebSocket,
    event_queue: asyncio.Queue[dict],
) -> None:
    """
    Sends events from the engine to the client.
    """
    try:
        while True:
            ev = await event_queue.get()
            await websocket.send_json(ev)
    except WebSocketDisconnect:
        # Normal disconnect; let game_ws handle cleanup
        pass
    except Exception:
        logger.exception("Error in _ws_sender")


def create_app(
    server_config: ServerConfig | None = None,
    simulation_config: SimulationConfig | None = None,
) -> FastAPI:
    app = FastAPI(title="Reverie", version=__version__, lifespan=lifespan)
    app.state.server_config = server_config or ServerConfig()
    app.state.simulation_config = simulation_config or SimulationConfig()
    app.include_router(router)
    return app


app = create_app()
