"""WebSocket streaming server for real-time motion events.

Runs a tracking session on the server's webcam and pushes every engine
event to all connected WebSocket clients as JSON messages.

Features:
- Real-time bob, slash, gesture and collection events over /ws
- REST API for status, inventory and session control
- Prometheus metrics endpoint

Usage:
    motion-engine serve
    # or
    uvicorn motion_engine.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import deque
from pathlib import Path
from typing import Optional

try:
    from fastapi import FastAPI, WebSocket, WebSocketDisconnect
    from fastapi.responses import PlainTextResponse
    _HAS_FASTAPI = True
except ImportError:
    _HAS_FASTAPI = False

if not _HAS_FASTAPI:
    raise ImportError("FastAPI required. Install with: pip install fastapi uvicorn")

from motion_engine.config import EngineConfig
from motion_engine.detector import MediaPipeKeypointSource, OpenCVCamera
from motion_engine.errors import MotionEngineError
from motion_engine.events import EngineEvent
from motion_engine.metrics import format_workout_time
from motion_engine.session import TrackingSession
from motion_engine.sinks import EventSink, SinkManager

logger = logging.getLogger("motion_engine.server")

app = FastAPI(title="MotionEngine", version="0.1.0")


class WebSocketSink(EventSink):
    """Queues every event for the broadcast step of the capture loop."""

    name = "websocket"

    def __init__(self, maxlen: int = 512):
        super().__init__()
        self.outbox: deque[dict] = deque(maxlen=maxlen)

    def handle(self, event: EngineEvent):
        self.outbox.append(event.to_dict())

    def take(self) -> list[dict]:
        messages = list(self.outbox)
        self.outbox.clear()
        return messages


# --- State ---

class ServerState:
    def __init__(self):
        self.clients: set[WebSocket] = set()
        self.config: EngineConfig = EngineConfig()
        self.session: Optional[TrackingSession] = None
        self.sink = WebSocketSink()
        self.sink_dir: Optional[Path] = None
        self.autostart = True
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.session is not None and self.session.running

state = ServerState()


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    session = state.session
    if session is None:
        return {"running": False, "paused": False, "clients": len(state.clients)}

    stats = session.stats
    return {
        "running": session.running,
        "paused": session.paused,
        "clients": len(state.clients),
        "fps": round(stats.fps, 1),
        "latency_ms": round(stats.avg_latency_ms, 1),
        "bob_count": stats.bob_count,
        "bobs_per_minute": stats.bobs_per_minute,
        "distance_miles": round(stats.distance_miles, 4),
        "elapsed": format_workout_time(stats.elapsed_seconds),
        "score": stats.score,
        "live_collectibles": stats.live_collectibles,
        "sinks": session.sinks.names,
    }


@app.get("/api/inventory")
async def api_inventory():
    session = state.session
    if session is None:
        return {"inventory": {}, "score": 0, "pending": []}
    return {
        "inventory": session.inventory(),
        "score": session.collection.score,
        "pending": [
            {"kind": p.kind, "commit_at": p.commit_at}
            for p in session.collection.pending
        ],
        "collectibles": [c.to_dict() for c in session.field],
    }


@app.post("/api/reset")
async def api_reset():
    if state.session is None:
        return {"reset": False}
    state.session.reset()
    await broadcast({"type": "reset", "timestamp": time.time()})
    return {"reset": True}


@app.post("/api/pause")
async def api_pause():
    if state.session is None:
        return {"paused": False}
    state.session.pause()
    return {"paused": state.session.paused}


@app.post("/api/resume")
async def api_resume():
    if state.session is None:
        return {"paused": False}
    state.session.resume()
    return {"paused": state.session.paused}


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    body = state.session.metrics.render() if state.session is not None else ""
    return PlainTextResponse(body, media_type="text/plain; version=0.0.4; charset=utf-8")


# --- WebSocket: events ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "running": state.running,
            "inventory": state.session.inventory() if state.session else {},
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
                data = json.loads(msg)
                if data.get("type") == "ping":
                    await ws.send_json({"type": "pong", "server_time": time.time()})
                elif data.get("type") == "get_inventory" and state.session:
                    await ws.send_json({"type": "inventory", "data": state.session.inventory()})
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all clients, dropping any that fail."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in list(state.clients):
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


async def broadcast_pending():
    for message in state.sink.take():
        await broadcast(message)


# --- Camera capture loop ---

def build_session(config: EngineConfig) -> TrackingSession:
    cfg = config.session
    sinks = SinkManager()
    sinks.register(state.sink)
    if state.sink_dir is not None:
        loaded = sinks.load_directory(state.sink_dir)
        logger.info("Loaded %d sinks from %s", loaded, state.sink_dir)
    return TrackingSession(
        source=MediaPipeKeypointSource(mirror_hands=cfg.mirror_hands),
        camera=OpenCVCamera(cfg.camera_index, cfg.frame_width, cfg.frame_height),
        config=config,
        sinks=sinks,
    )


async def capture_loop(session: TrackingSession):
    """Main loop: tick the session and broadcast what it produced."""
    try:
        await session.start()
    except MotionEngineError as e:
        logger.error("Tracking could not start: %s", e)
        return

    interval = 1.0 / max(1e-3, session.config.session.target_fps)
    frames = 0
    try:
        while session.running:
            t0 = time.perf_counter()
            await session.tick()
            await broadcast_pending()

            frames += 1
            if frames % 30 == 0:
                stats = session.stats
                await broadcast({
                    "type": "stats",
                    "fps": round(stats.fps, 1),
                    "latency_ms": round(stats.avg_latency_ms, 1),
                    "bobs_per_minute": stats.bobs_per_minute,
                    "elapsed": format_workout_time(stats.elapsed_seconds),
                })
            await asyncio.sleep(max(0.0, interval - (time.perf_counter() - t0)))
    finally:
        session.stop("server loop exit")
        logger.info("Capture loop stopped")


@app.on_event("startup")
async def startup():
    if not state.autostart:
        return
    state.session = build_session(state.config)
    state.task = asyncio.create_task(capture_loop(state.session))


@app.on_event("shutdown")
async def shutdown():
    if state.session is not None:
        state.session.stop("server shutdown")
    if state.task is not None:
        await state.task
        state.task = None
