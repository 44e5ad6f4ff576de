"""Pose capture application entry point."""
from __future__ import annotations

import argparse
import asyncio
import enum
import logging
import random
import string
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Tuple

import numpy as np

from .devices import CaptureDevice, OpenCVCamera
from .landmarks import PoseFrame
from .overlay import clear_surface, composite, create_surface, render_pose, summarize_pose
from .providers import PoseSource, SyntheticPoseSource, create_pose_source
from .transports import HttpPoseTransport, PoseTransport

LOGGER = logging.getLogger(__name__)

DEMO_SURFACE_SIZE: Tuple[int, int] = (640, 480)
NO_POSE_DETAILS = "No pose detected"


def generate_session_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class CaptureState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPED = "stopped"


class CaptureMode(enum.Enum):
    CAMERA = "camera"
    DEMO = "demo"


@dataclass
class CaptureConfig:
    """Runtime configuration for the capture application."""

    source: PoseSource
    transport: Optional[PoseTransport] = None
    device_factory: Optional[Callable[[], CaptureDevice]] = None
    synthetic: SyntheticPoseSource = field(default_factory=SyntheticPoseSource)
    renderer: Callable[[np.ndarray, Optional[PoseFrame]], None] = render_pose
    frame_interval: float = 1 / 30
    demo_size: Tuple[int, int] = DEMO_SURFACE_SIZE
    session_id: str = field(default_factory=generate_session_id)


class PoseCaptureApp:
    """Drives acquire, detect, render and send once per tick.

    State moves ``IDLE -> STARTING -> ACTIVE -> STOPPED``; ``STOPPED`` may be
    started again. Sending can only be toggled while ``ACTIVE`` and every
    stop turns it off.
    """

    def __init__(self, config: CaptureConfig) -> None:
        self.config = config
        self.session_id = config.session_id
        self.state = CaptureState.IDLE
        self.mode: Optional[CaptureMode] = None
        self.sending_enabled = False
        self.surface: Optional[np.ndarray] = None
        self.details = ""
        self.last_error: Optional[str] = None
        self.camera_status = "Waiting"
        self.pose_status = "Waiting"
        self.send_status = "Disabled"
        self._device: Optional[CaptureDevice] = None
        self._last_image: Optional[np.ndarray] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._transport_connected = False
        self._start_attempt = 0

    async def __aenter__(self) -> "PoseCaptureApp":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def frames_sent(self) -> int:
        return self.config.transport.frames_sent if self.config.transport else 0

    async def start_camera(self) -> bool:
        if not self._can_start():
            return False
        if self.config.device_factory is None:
            return self._fail_start("No capture device configured")

        attempt = self._begin_start()
        self.camera_status = "Starting..."
        try:
            device = self.config.device_factory()
            width, height = await asyncio.to_thread(device.open)
        except Exception as exc:
            LOGGER.error("Error starting camera: %s", exc)
            if not self._is_current(attempt):
                return False
            return self._fail_start(str(exc))

        if not self._is_current(attempt):
            LOGGER.info("Capture stopped while the camera was opening; releasing it")
            device.release()
            return False

        self._device = device
        if not await self._activate(attempt, CaptureMode.CAMERA, width, height):
            return False
        self.camera_status = "Active"
        self.pose_status = "Detecting..."
        return True

    async def start_demo(self) -> bool:
        if not self._can_start():
            return False
        attempt = self._begin_start()
        width, height = self.config.demo_size
        if not await self._activate(attempt, CaptureMode.DEMO, width, height):
            return False
        self.camera_status = "Demo Mode Active"
        self.pose_status = "Generating Demo Data"
        return True

    async def stop(self) -> None:
        LOGGER.info("Stopping pose capture (state=%s)", self.state.value)
        self.state = CaptureState.STOPPED
        self._start_attempt += 1

        task = self._loop_task
        self._loop_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._release_device()
        self._last_image = None

        if self.surface is not None:
            clear_surface(self.surface)

        if self.sending_enabled:
            LOGGER.info("Data sending disabled")
        self.sending_enabled = False
        self.send_status = "Disabled"

        self.camera_status = "Stopped"
        self.pose_status = "Waiting"

    def toggle_sending(self) -> bool:
        if self.state is not CaptureState.ACTIVE:
            LOGGER.warning("Data sending can only be toggled while capture is active")
            return self.sending_enabled
        if self.config.transport is None:
            LOGGER.warning("No transport configured; data sending unavailable")
            return self.sending_enabled
        self.sending_enabled = not self.sending_enabled
        self.send_status = "Enabled" if self.sending_enabled else "Disabled"
        LOGGER.info("Data sending %s", self.send_status.lower())
        return self.sending_enabled

    async def close(self) -> None:
        await self.stop()
        if self.config.transport is not None and self._transport_connected:
            await self.config.transport.close()
            self._transport_connected = False
        self.config.source.close()

    async def wait_stopped(self) -> None:
        task = self._loop_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def composite(self) -> Optional[np.ndarray]:
        if self.surface is None:
            return None
        return composite(self._last_image, self.surface)

    def tick(self, now_ms: Optional[float] = None) -> Optional[PoseFrame]:
        """Run one acquire/detect/render/send cycle."""

        if now_ms is None:
            now_ms = time.monotonic() * 1000.0
        image = self._device.read() if self._device is not None else None
        self._last_image = image

        if self.mode is CaptureMode.CAMERA:
            frame = self.config.source.detect(image, now_ms)
        else:
            frame = self.config.synthetic.generate()
        if frame is not None:
            frame = frame.with_session(self.session_id)

        if self.surface is not None:
            self.config.renderer(self.surface, frame)

        if frame is None:
            self.pose_status = "No Pose Detected"
            self.details = NO_POSE_DETAILS
            return None

        self.pose_status = "Pose Detected"
        self.details = summarize_pose(frame, self.session_id)
        if self.sending_enabled and self.config.transport is not None:
            self.config.transport.dispatch(frame)
        return frame

    def _can_start(self) -> bool:
        if self.state in (CaptureState.IDLE, CaptureState.STOPPED):
            return True
        LOGGER.warning("Capture already %s; ignoring start request", self.state.value)
        return False

    def _begin_start(self) -> int:
        self._start_attempt += 1
        self.state = CaptureState.STARTING
        return self._start_attempt

    def _is_current(self, attempt: int) -> bool:
        """False once a stop or a newer start has superseded ``attempt``."""
        return attempt == self._start_attempt and self.state is CaptureState.STARTING

    def _fail_start(self, message: str) -> bool:
        self.state = CaptureState.IDLE
        self.last_error = message
        self.camera_status = f"Error: {message}"
        return False

    def _release_device(self) -> None:
        device = self._device
        self._device = None
        if device is not None:
            device.release()

    async def _activate(self, attempt: int, mode: CaptureMode, width: int, height: int) -> bool:
        if self.config.transport is not None and not self._transport_connected:
            try:
                await self.config.transport.connect()
            except Exception as exc:
                LOGGER.error("Error connecting transport: %s", exc)
                if not self._is_current(attempt):
                    return False
                self._release_device()
                return self._fail_start(str(exc))
            self._transport_connected = True
        if not self._is_current(attempt):
            return False
        self.mode = mode
        self.last_error = None
        self.surface = create_surface(width, height)
        self.state = CaptureState.ACTIVE
        LOGGER.info("Pose capture active in %s mode at %dx%d (session %s)", mode.value, width, height, self.session_id)
        self._loop_task = asyncio.get_running_loop().create_task(self._run())
        return True

    async def _run(self) -> None:
        interval = self.config.frame_interval
        while self.state is CaptureState.ACTIVE:
            try:
                self.tick()
            except Exception as exc:
                LOGGER.exception("Pose capture tick failed: %s", exc)
            await asyncio.sleep(interval)


def create_argument_parser() -> argparse.ArgumentParser:
    """Construct an argument parser for the capture CLI."""

    parser = argparse.ArgumentParser(description="Render pose landmarks and stream them to a collector")
    parser.add_argument("--mode", choices=["camera", "demo"], default="camera", help="Initial capture mode")
    parser.add_argument("--endpoint", default="http://127.0.0.1:3000", help="Collector base URL")
    parser.add_argument("--send", action="store_true", help="Enable data sending as soon as capture is active")
    parser.add_argument("--model", type=Path, help="MediaPipe pose landmarker .task file")
    parser.add_argument("--camera", type=int, default=0, help="Camera index for OpenCV")
    parser.add_argument("--image-width", type=int, default=1280, help="Requested camera width")
    parser.add_argument("--image-height", type=int, default=720, help="Requested camera height")
    parser.add_argument("--detection-confidence", type=float, default=0.5)
    parser.add_argument("--tracking-confidence", type=float, default=0.5)
    parser.add_argument("--frame-interval", type=float, default=1 / 30, help="Seconds between ticks")
    parser.add_argument("--max-in-flight", type=int, default=4, help="Maximum outstanding sends")
    parser.add_argument("--headless", action="store_true", help="Run without a preview window")
    parser.add_argument("--duration", type=float, help="Stop after this many seconds (headless only)")
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging")
    return parser


def build_config_from_args(args: "argparse.Namespace") -> CaptureConfig:
    """Create a :class:`CaptureConfig` instance from parsed arguments."""

    synthetic = SyntheticPoseSource()
    source = create_pose_source(
        getattr(args, "model", None),
        detection_confidence=args.detection_confidence,
        tracking_confidence=args.tracking_confidence,
        synthetic=synthetic,
    )
    image_size = (args.image_width or 0, args.image_height or 0)

    def device_factory() -> CaptureDevice:
        return OpenCVCamera(camera_index=args.camera, image_size=image_size)

    transport = HttpPoseTransport(endpoint=args.endpoint, max_in_flight=args.max_in_flight)
    return CaptureConfig(
        source=source,
        transport=transport,
        device_factory=device_factory,
        synthetic=synthetic,
        frame_interval=args.frame_interval,
    )


def configure_logging(debug: bool = False) -> None:
    """Configure the root logger for the client and server CLIs."""

    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )


async def run_headless(app: PoseCaptureApp, mode: str, send: bool, duration: Optional[float]) -> None:
    started = await (app.start_demo() if mode == "demo" else app.start_camera())
    if not started:
        LOGGER.error("Capture did not start: %s", app.last_error)
        return
    if send:
        app.toggle_sending()
    if duration is None:
        await app.wait_stopped()
        return
    await asyncio.sleep(duration)
    LOGGER.info("Frames sent: %d", app.frames_sent)


async def main(args: Optional["argparse.Namespace"] = None) -> None:
    if args is None:
        parser = create_argument_parser()
        args = parser.parse_args()

    configure_logging(getattr(args, "debug", False))

    config = build_config_from_args(args)

    async with PoseCaptureApp(config) as app:
        if args.headless:
            await run_headless(app, args.mode, args.send, args.duration)
        else:
            from .preview import PreviewWindow

            await PreviewWindow(app).run(initial_mode=args.mode, send=args.send)


def cli() -> None:  # pragma: no cover - console script
    asyncio.run(main())


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    cli()
