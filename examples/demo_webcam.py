#!/usr/bin/env python3
"""Live webcam walking demo with the collectible overlay.

Bob your head to walk, pinch a collectible to pick it up, swipe a flat hand
to slash.

Usage:
    python examples/demo_webcam.py [--camera 0] [--no-display]
"""

import argparse
import asyncio
import sys

import cv2

sys.path.insert(0, "src")
from motion_engine import CallbackSink, EngineConfig, TrackingSession
from motion_engine.detector import MediaPipeKeypointSource, OpenCVCamera
from motion_engine.metrics import format_workout_time


class PreviewCamera(OpenCVCamera):
    """Keeps the last frame around for drawing."""

    last_frame = None

    def read(self):
        self.last_frame = super().read()
        return self.last_frame


def draw_overlay(frame, session: TrackingSession):
    """Draw collectibles and the HUD on a BGR frame."""
    stats = session.stats
    cv2.putText(
        frame,
        f"Bobs: {stats.bob_count} ({stats.bobs_per_minute}/min) | "
        f"{stats.distance_miles:.3f} mi | {format_workout_time(stats.elapsed_seconds)}",
        (10, 30),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.6,
        (0, 255, 0),
        2,
    )
    cv2.putText(
        frame, f"Score: {stats.score} | FPS: {stats.fps:.1f}", (10, 60),
        cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 255), 2,
    )

    for entity in session.field:
        center = (int(entity.x), int(entity.y))
        cv2.circle(frame, center, int(entity.radius), (0, 200, 255), 2)
        cv2.putText(
            frame, entity.kind, (center[0] - 20, center[1] - int(entity.radius) - 5),
            cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1,
        )

    if session.collection.pending:
        cv2.putText(
            frame, "Collecting...", (10, frame.shape[0] - 20),
            cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 200, 0), 2,
        )
    return frame


async def run(args):
    config = EngineConfig()
    camera = PreviewCamera(args.camera, config.session.frame_width, config.session.frame_height)
    session = TrackingSession(MediaPipeKeypointSource(), camera=camera, config=config)

    callbacks = CallbackSink()
    callbacks.on_bob_detected(lambda total: print(f"  🚶 bob #{total}"))
    callbacks.on_collected(lambda kind, delta: print(f"  ✨ picked up {kind}"))
    callbacks.on_slash(lambda start, end, angle, speed: print(f"  ⚔️  slash ({speed:.0f} px/s)"))
    session.sinks.register(callbacks)

    async with session:
        while session.running:
            await session.tick()
            if args.no_display or camera.last_frame is None:
                await asyncio.sleep(1 / config.session.target_fps)
                continue

            # hand landmarks are mirrored, so draw on a mirrored preview
            frame = cv2.flip(cv2.cvtColor(camera.last_frame, cv2.COLOR_RGB2BGR), 1)
            cv2.imshow("MotionEngine", draw_overlay(frame, session))
            if cv2.waitKey(1) & 0xFF == ord("q"):
                session.stop("quit")

    cv2.destroyAllWindows()
    stats = session.stats
    print(f"\nProcessed {stats.total_frames} frames, {stats.bob_count} bobs, score {stats.score}")


def main():
    parser = argparse.ArgumentParser(description="MotionEngine Webcam Demo")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--no-display", action="store_true", help="Run headless")
    args = parser.parse_args()

    print("Starting MotionEngine...")
    print("Press 'q' to quit\n")
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
