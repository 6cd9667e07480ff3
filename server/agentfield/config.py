from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _load_env_from_repo_root() -> None:
    # server/agentfield/config.py -> repo root is 2 levels up from "server"
    env_path = Path(__file__).resolve().parents[2] / ".env"
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = value.strip()
        if value and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


_load_env_from_repo_root()


def _env_int(name: str, default: int, low: int, high: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        value = default
    return max(low, min(high, value))


def _env_float(name: str, default: float, low: float, high: float) -> float:
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        value = default
    return max(low, min(high, value))


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class SyncSettings:
    host: str = "0.0.0.0"
    port: int = 8765
    path: str = "/ws"
    ignored_subprotocols: frozenset[str] = frozenset({"vite-hmr"})

    agent_count: int = 1000
    world_width: float = 20.0
    world_height: float = 12.0
    seed: int | None = None

    tick_interval_ms: float = 16.0
    broadcast_interval_ms: float = 64.0
    heartbeat_interval_sec: float = 30.0
    max_missed_heartbeats: int = 3

    nominal_frame_ms: float = 16.667
    max_time_scale: float = 2.0
    max_delta_ms: float = 32.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "SyncSettings":
        path = _env_str("SIM_WS_PATH", "/ws")
        if not path.startswith("/"):
            path = "/" + path

        raw_ignored = os.getenv("SIM_IGNORED_SUBPROTOCOLS", "vite-hmr")
        ignored = frozenset(item.strip() for item in raw_ignored.split(",") if item.strip())

        return cls(
            host=_env_str("SIM_WS_HOST", "0.0.0.0"),
            port=_env_int("SIM_WS_PORT", 8765, 1, 65535),
            path=path,
            ignored_subprotocols=ignored,
            agent_count=_env_int("SIM_AGENT_COUNT", 1000, 0, 100_000),
            world_width=_env_float("SIM_WORLD_WIDTH", 20.0, 1.0, 10_000.0),
            world_height=_env_float("SIM_WORLD_HEIGHT", 12.0, 1.0, 10_000.0),
            seed=_env_optional_int("SIM_SEED"),
            tick_interval_ms=_env_float("SIM_TICK_INTERVAL_MS", 16.0, 1.0, 1000.0),
            broadcast_interval_ms=_env_float("SIM_BROADCAST_INTERVAL_MS", 64.0, 5.0, 10_000.0),
            heartbeat_interval_sec=_env_float("SIM_HEARTBEAT_INTERVAL_SEC", 30.0, 0.5, 600.0),
            max_missed_heartbeats=_env_int("SIM_MAX_MISSED_HEARTBEATS", 3, 1, 20),
            nominal_frame_ms=_env_float("SIM_NOMINAL_FRAME_MS", 16.667, 1.0, 1000.0),
            max_time_scale=_env_float("SIM_MAX_TIME_SCALE", 2.0, 0.1, 10.0),
            max_delta_ms=_env_float("SIM_MAX_DELTA_MS", 32.0, 1.0, 5000.0),
            log_level=_env_str("SIM_LOG_LEVEL", "INFO").upper(),
        )


@dataclass(frozen=True)
class ClientSettings:
    url: str = "ws://localhost:8765/ws"
    subprotocol: str = "simulation"
    base_delay_sec: float = 1.0
    cap_attempts: int = 5
    max_attempts: int = 3

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            url=_env_str("SIM_CLIENT_URL", "ws://localhost:8765/ws"),
            subprotocol=_env_str("SIM_CLIENT_SUBPROTOCOL", "simulation"),
            base_delay_sec=_env_float("SIM_RECONNECT_BASE_DELAY_SEC", 1.0, 0.0, 60.0),
            cap_attempts=_env_int("SIM_RECONNECT_CAP_ATTEMPTS", 5, 1, 100),
            max_attempts=_env_int("SIM_RECONNECT_MAX_ATTEMPTS", 3, 0, 100),
        )
