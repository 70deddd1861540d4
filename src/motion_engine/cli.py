"""MotionEngine CLI, the main entry point for all operations.

Usage:
    motion-engine run          Track from the camera and log events
    motion-engine replay       Replay a recorded session through the engine
    motion-engine serve        Start the WebSocket server
    motion-engine benchmark    Time the detectors on synthetic frames
    motion-engine config       Write the default configuration as YAML
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")

from motion_engine.config import EngineConfig
from motion_engine.metrics import format_workout_time

app = typer.Typer(
    name="motion-engine",
    help="🚶 Head-bob step counting and hand gestures from a webcam.",
    add_completion=False,
)


@app.callback()
def main_options(
    log_level: str = typer.Option("info", "--log-level", help="Log level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(path: Optional[str]) -> EngineConfig:
    if path is None:
        return EngineConfig()
    if not Path(path).exists():
        typer.echo(f"❌ Config not found: {path}", err=True)
        raise typer.Exit(1)
    return EngineConfig.from_yaml(path)


def _print_summary(session):
    stats = session.stats
    typer.echo("\n📊 Session summary:")
    typer.echo(f"   Bobs:      {stats.bob_count} ({stats.bobs_per_minute}/min)")
    typer.echo(f"   Distance:  {stats.distance_miles:.3f} mi")
    typer.echo(f"   Time:      {format_workout_time(stats.elapsed_seconds)}")
    typer.echo(f"   Collected: {session.inventory() or '-'} (score {stats.score})")
    if stats.detection_failures:
        typer.echo(f"   Failures:  {stats.detection_failures}")


@app.command()
def run(
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    camera: Optional[int] = typer.Option(None, help="Camera device index"),
    duration: float = typer.Option(0, help="Tracking duration in seconds (0 = until Ctrl+C)"),
    record: Optional[str] = typer.Option(None, help="Save landmarks to this recording file"),
    compact: bool = typer.Option(False, help="Save the recording in compact .npz format"),
    sinks: Optional[str] = typer.Option(None, "--sinks", help="Directory of event sink files"),
):
    """Track head bobs and hand gestures from the camera, logging events."""
    from motion_engine.detector import MediaPipeKeypointSource, OpenCVCamera
    from motion_engine.errors import MotionEngineError
    from motion_engine.recorder import SessionRecorder
    from motion_engine.session import TrackingSession
    from motion_engine.sinks import LoggingSink

    cfg = _load_config(config)
    if camera is not None:
        cfg.session.camera_index = camera

    session = TrackingSession(
        source=MediaPipeKeypointSource(mirror_hands=cfg.session.mirror_hands),
        camera=OpenCVCamera(cfg.session.camera_index, cfg.session.frame_width, cfg.session.frame_height),
        config=cfg,
    )
    session.sinks.register(LoggingSink())
    if sinks:
        loaded = session.sinks.load_directory(sinks)
        typer.echo(f"🔌 Loaded {loaded} sinks from {sinks}")

    recorder = None
    if record:
        recorder = SessionRecorder(frame_size=session.frame_size)
        recorder.start()
        session.recorder = recorder

    async def track():
        async with session:
            if recorder is not None:
                recorder.frame_size = session.frame_size
            typer.echo(f"🎥 Tracking from camera {cfg.session.camera_index}. Press Ctrl+C to stop")
            if duration > 0:
                try:
                    await asyncio.wait_for(session.run(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
            else:
                await session.run()

    try:
        asyncio.run(track())
    except KeyboardInterrupt:
        pass
    except MotionEngineError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    _print_summary(session)

    if recorder is not None:
        recorder.stop()
        if compact:
            recorder.save_compact(record)
        else:
            recorder.save(record)
        typer.echo(f"💾 Saved {recorder.frame_count} frames to: {record}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to recording file"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    seed: Optional[int] = typer.Option(None, help="Seed for collectible spawning"),
    quiet: bool = typer.Option(False, help="Only print the summary"),
    realtime: bool = typer.Option(False, help="Run the full frame loop at the configured frame rate"),
):
    """Replay a recorded session through the engine."""
    import random

    from motion_engine.recorder import ReplaySource, SessionPlayer, replay as replay_recording
    from motion_engine.session import TrackingSession
    from motion_engine.sinks import CallbackSink

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    player = SessionPlayer.load(path)
    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration:.1f}s)")

    cfg = _load_config(config)
    cfg.session.frame_width, cfg.session.frame_height = player.frame_size
    source = ReplaySource(player)
    clock = time.monotonic if realtime else (lambda: player.duration)
    session = TrackingSession(source=source, config=cfg, clock=clock, rng=random.Random(seed))

    if not quiet:
        callbacks = CallbackSink()
        callbacks.on_bob_detected(lambda total: typer.echo(f"   🚶 bob #{total}"))
        callbacks.on_slash(lambda start, end, angle, speed: typer.echo(f"   ⚔️  slash at {speed:.0f} px/s"))
        callbacks.on_collected(lambda kind, delta: typer.echo(f"   ✨ {kind}"))
        session.sinks.register(callbacks)

    if realtime:
        async def play():
            interval = 1.0 / cfg.session.target_fps
            async with session:
                while session.running and not source.exhausted:
                    await session.tick()
                    await asyncio.sleep(interval)

        asyncio.run(play())
    else:
        replay_recording(session, player)
    _print_summary(session)
    typer.echo("\n✅ Replay complete.")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    sinks: Optional[str] = typer.Option(None, "--sinks", help="Directory of event sink files"),
):
    """Start the WebSocket event streaming server."""
    import uvicorn
    from motion_engine.server import app as fastapi_app, state

    state.config = _load_config(config)
    if sinks:
        state.sink_dir = Path(sinks)

    typer.echo(f"🚀 Starting MotionEngine server on {host}:{port}")
    typer.echo(f"   Events stream on ws://{host}:{port}/ws")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=logging.getLevelName(logging.getLogger().level).lower())


@app.command()
def benchmark(
    frames: int = typer.Option(1000, help="Number of synthetic frames"),
    seed: int = typer.Option(42, help="Random seed"),
):
    """Time the detector stages on synthetic landmarks."""
    import numpy as np

    from motion_engine.keypoints import NUM_FACE_LANDMARKS, NUM_HAND_LANDMARKS, PoseResult
    from motion_engine.session import TrackingSession

    typer.echo(f"⚡ Running benchmark: {frames} frames")

    rng = np.random.default_rng(seed)
    session = TrackingSession(source=None, config=EngineConfig())
    session.field.start(0.0)
    width, height = session.frame_size

    times = []
    for i in range(frames):
        now = i / 30.0
        face = PoseResult("face", rng.random((NUM_FACE_LANDMARKS, 3)) * (width, height, 1))
        hand = PoseResult("hand", rng.random((NUM_HAND_LANDMARKS, 3)) * (width, height, 1))
        t0 = time.perf_counter()
        session.process(face, hand, now)
        session.events.drain()
        times.append(time.perf_counter() - t0)

    avg_ms = sum(times) / len(times) * 1000
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000
    fps = 1000 / avg_ms if avg_ms > 0 else 0

    typer.echo(f"\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.3f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.3f} ms")
    typer.echo(f"   Throughput:      {fps:.0f} FPS")

    typer.echo(f"\n📈 Stage breakdown:")
    for name, stats in session.profiler.summary().items():
        typer.echo(f"   {name:18s} avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")


@app.command("config")
def write_config(
    output: str = typer.Option("motion_engine.yaml", "-o", help="Output YAML path"),
    force: bool = typer.Option(False, help="Overwrite an existing file"),
):
    """Write the default configuration as YAML."""
    path = Path(output)
    if path.exists() and not force:
        typer.echo(f"❌ {output} exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)
    EngineConfig().to_yaml(path)
    typer.echo(f"💾 Default config written to: {output}")


def main():
    app()


if __name__ == "__main__":
    main()
