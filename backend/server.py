"""FastAPI server for ComputeVis."""

import asyncio
import json
import logging
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from computevis import ComputeVis
from computevis.annotation import Annotator, StaticAnnotator
from computevis.models import (
    INFERENCE_PROFILE,
    TRAINING_PROFILE,
    Mode,
    SimulationEvent,
)
from computevis.utils import history_series, to_json

from .gemini import GeminiAnnotator
from .models import (
    AnnotatorInfo,
    ControlResponse,
    DashboardSnapshot,
    GpuInfo,
    LogEntryModel,
    MetricsResponse,
    MetricsSample,
    RunStatus,
    StartRequest,
    TokenDisplay,
    WorkloadInfo,
)
from .settings import Settings, get_key_info, load_settings

VERSION = "1.0.0"

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ComputeVis",
    description="LLM Training vs Inference GPU Dynamics",
    version=VERSION,
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Get the project root directory
PROJECT_ROOT = Path(__file__).parent.parent


def build_annotator(settings: Settings) -> Annotator:
    """Use Gemini when a key is configured, static text otherwise."""
    if not settings.api_key:
        logger.info("No Gemini API key found; console annotations use fallbacks")
        return StaticAnnotator()
    return GeminiAnnotator(
        settings.api_key,
        timeout=settings.request_timeout_s,
        training_model=settings.training_model,
        inference_model=settings.inference_model,
        retries=settings.annotation_retries,
        backoff=settings.annotation_backoff_ms / 1000,
    )


settings = load_settings()
simulator = ComputeVis(
    config=settings.simulation_config(),
    annotator=build_annotator(settings),
)


class ConnectionManager:
    """Fan simulation events out to WebSocket clients."""

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self.queues: dict[WebSocket, asyncio.Queue] = {}

    async def connect(self, websocket: WebSocket) -> asyncio.Queue:
        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self.queues[websocket] = queue
        return queue

    def disconnect(self, websocket: WebSocket):
        self.queues.pop(websocket, None)

    def publish(self, event: SimulationEvent):
        message = event.to_dict()
        for queue in self.queues.values():
            if queue.full():
                # Slow client: drop its oldest pending event
                queue.get_nowait()
            queue.put_nowait(message)


manager = ConnectionManager()
simulator.subscribe(manager.publish)


def run_status() -> RunStatus:
    return RunStatus(**simulator.state.as_dict())


def build_snapshot() -> DashboardSnapshot:
    history = simulator.history.snapshot()
    return DashboardSnapshot(
        run=run_status(),
        latest=MetricsSample.model_validate(simulator.latest),
        history=[MetricsSample.model_validate(s) for s in history],
        tokens=TokenDisplay(**simulator.tokens.as_dict()),
        logs=[LogEntryModel.model_validate(e) for e in simulator.console.entries()],
        expert_tip=simulator.expert_tip,
    )


@app.get("/")
async def root():
    """Serve the dashboard page if it is bundled."""
    index = PROJECT_ROOT / "frontend" / "index.html"
    if index.exists():
        return FileResponse(index)
    return JSONResponse({"name": "ComputeVis", "docs": "/docs"})


@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": VERSION}


@app.get("/api/gpu", response_model=GpuInfo)
async def gpu_info():
    """Describe the simulated device and workload peaks."""
    gpu = simulator.gpu
    return GpuInfo(
        name=gpu.name,
        vram_total_gb=gpu.vram_total_gb,
        peak_tflops=gpu.peak_tflops,
        idle_vram_gb=gpu.idle_vram_gb,
        training=WorkloadInfo(
            vram_peak_gb=TRAINING_PROFILE.vram_peak_gb,
            compute_peak=TRAINING_PROFILE.compute_peak,
        ),
        inference=WorkloadInfo(
            vram_peak_gb=INFERENCE_PROFILE.vram_peak_gb,
            compute_peak=INFERENCE_PROFILE.compute_peak,
        ),
    )


@app.get("/api/state", response_model=DashboardSnapshot)
async def get_state():
    """Full dashboard snapshot."""
    return build_snapshot()


@app.get("/api/metrics", response_model=MetricsResponse)
async def get_metrics():
    """Latest sample, rolling history and chart-ready series."""
    history = simulator.history.snapshot()
    return MetricsResponse(
        latest=MetricsSample.model_validate(simulator.latest),
        history=[MetricsSample.model_validate(s) for s in history],
        series=history_series(history),
    )


@app.get("/api/logs", response_model=list[LogEntryModel])
async def get_logs():
    """Console entries, newest first."""
    return [LogEntryModel.model_validate(e) for e in simulator.console.entries()]


@app.get("/api/annotator", response_model=AnnotatorInfo)
async def annotator_info():
    """Report which annotation backend is configured."""
    key = get_key_info()
    is_gemini = isinstance(simulator.annotator, GeminiAnnotator)
    backend = "gemini" if is_gemini else "static"
    return AnnotatorInfo(
        backend=backend,
        key_available=key.available,
        key_source=key.source.value,
        masked_key=key.masked_key,
    )


@app.post("/api/start", response_model=ControlResponse)
async def start_task(request: StartRequest):
    """Begin a training or inference run. Ignored unless idle."""
    applied = simulator.start(request.task)
    return ControlResponse(applied=applied, run=run_status())


@app.post("/api/pause", response_model=ControlResponse)
async def toggle_pause():
    """Pause or resume the active run. Ignored when idle."""
    applied = simulator.toggle_pause() is not None
    return ControlResponse(applied=applied, run=run_status())


@app.post("/api/stop", response_model=ControlResponse)
async def stop_task():
    """Abort the active run and return to idle."""
    applied = simulator.stop()
    return ControlResponse(applied=applied, run=run_status())


def handle_control(message: dict) -> dict:
    """Apply a WebSocket control message and build the reply."""
    if not isinstance(message, dict):
        return {"type": "error", "message": "Expected a JSON object"}
    kind = message.get("type")
    if kind == "start":
        try:
            task = Mode(message.get("task"))
        except ValueError:
            task_name = message.get("task")
            return {"type": "error", "message": f"Unknown task: {task_name}"}
        return {"type": "ack", "action": kind, "applied": simulator.start(task)}
    if kind == "pause":
        applied = simulator.toggle_pause() is not None
        return {"type": "ack", "action": kind, "applied": applied}
    if kind == "stop":
        return {"type": "ack", "action": kind, "applied": simulator.stop()}
    if kind == "snapshot":
        return {"type": "snapshot", "data": build_snapshot().model_dump(mode="json")}
    return {"type": "error", "message": f"Unknown message type: {kind}"}


async def pump_events(websocket: WebSocket, queue: asyncio.Queue):
    """Forward queued simulation events to one client."""
    while True:
        message = await queue.get()
        await websocket.send_json(message)


async def stop_sender(sender: asyncio.Task):
    """Cancel a client's sender task and return the error it died with, if any."""
    sender.cancel()
    (result,) = await asyncio.gather(sender, return_exceptions=True)
    if isinstance(result, Exception):
        logger.warning("Telemetry sender failed: %s", result)
        return result
    return None


@app.websocket("/ws/telemetry")
async def telemetry_stream(websocket: WebSocket):
    """
    WebSocket endpoint for live telemetry.

    Sends a snapshot on connect and then every simulation event. Accepts
    start, pause, stop and snapshot messages.
    """
    queue = await manager.connect(websocket)
    await websocket.send_json(
        {"type": "snapshot", "data": build_snapshot().model_dump(mode="json")}
    )
    sender = asyncio.create_task(pump_events(websocket, queue))

    try:
        while True:
            data = await websocket.receive_text()
            if sender.done():
                break
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json(
                    {"type": "error", "message": "Invalid JSON"}
                )
                continue
            await websocket.send_json(to_json(handle_control(message)))
    except WebSocketDisconnect:
        logger.debug("Telemetry client disconnected")
    finally:
        manager.disconnect(websocket)
        await stop_sender(sender)


@app.on_event("startup")
async def startup():
    """Start the simulation timers and mount static files."""
    simulator.open()
    frontend_path = PROJECT_ROOT / "frontend"
    if frontend_path.exists():
        app.mount("/static", StaticFiles(directory=frontend_path), name="static")


@app.on_event("shutdown")
async def shutdown():
    """Cancel timers so nothing mutates state after teardown."""
    await simulator.close()
    await simulator.annotator.aclose()


def main():
    """Run the server."""
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        app, host=settings.host, port=settings.port, log_level=settings.log_level
    )


if __name__ == "__main__":
    main()
