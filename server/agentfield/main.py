from __future__ import annotations

import json
import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from agentfield.config import SyncSettings
from agentfield.service import SyncService


settings = SyncSettings.from_env()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger("agentfield.main")

MAX_LOG_LINE = 80

app = FastAPI(title="Agentfield Simulation Server", version="0.1.0")
service = SyncService(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def format_request_log(method: str, path: str, status: int, duration_ms: float, body: bytes | None) -> str:
    line = f"{method} {path} {status} in {duration_ms:.0f}ms"
    if body:
        try:
            line += f" :: {json.dumps(json.loads(body), separators=(',', ':'))}"
        except ValueError:
            pass
    if len(line) > MAX_LOG_LINE:
        line = line[: MAX_LOG_LINE - 1] + "…"
    return line


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    path = request.url.path
    if not path.startswith("/api"):
        return response

    body = b""
    async for chunk in response.body_iterator:
        body += chunk
    duration_ms = (time.perf_counter() - started_at) * 1000.0
    LOGGER.info(format_request_log(request.method, path, response.status_code, duration_ms, body))
    return Response(
        content=body,
        status_code=response.status_code,
        headers=dict(response.headers),
        media_type=response.media_type,
    )


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error("server error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": str(exc) or "Internal Server Error"})


@app.on_event("startup")
async def startup() -> None:
    await service.start()


@app.on_event("shutdown")
async def shutdown() -> None:
    await service.stop()


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/api/state")
async def state() -> dict:
    return {
        "agents": len(service.world),
        "connections": len(service.registry),
        "ticks": service.world.world_state.tick,
        "messages_sent": service.broadcaster.messages_sent,
        "tasks": {task.name: {"runs": task.runs, "failures": task.failures} for task in service.tasks},
        "runtime": {
            "last_tick_ms": round(float(service.clock.last_tick_ms), 3),
            "avg_tick_ms": round(float(service.clock.avg_tick_ms), 3),
        },
    }


@app.get("/api/agents")
async def agents() -> list[dict]:
    return [record.model_dump(by_alias=True) for record in service.world.snapshot()]


@app.get("/api/agents/{agent_id}")
async def agent(agent_id: str) -> dict:
    found = service.world.agent(agent_id)
    if found is None:
        raise HTTPException(status_code=404, detail="agent not found")
    return found.to_record().model_dump(by_alias=True)
