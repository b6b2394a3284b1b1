from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

DEFAULT_USER_AGENT = "rampbench/0.1.0"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"


class AuthType(str, Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    HEADER = "header"


class RampingMode(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    auth_type: AuthType = AuthType.NONE
    username: str | None = None
    password: str | None = None
    token: str | None = None
    custom_header: str | None = None


@dataclass(frozen=True, slots=True)
class RampingConfig:
    mode: RampingMode = RampingMode.LINEAR
    start_rate: int = 50
    max_rate: int = 5000
    step: int = 50
    duration_seconds: int = 30
    connections: int = 100


@dataclass(frozen=True, slots=True)
class ThresholdConfig:
    max_error_rate: float = 5.0
    max_p99_ms: int = 3000


@dataclass(frozen=True, slots=True)
class BenchmarkConfig:
    urls: tuple[str, ...] = ()
    method: HttpMethod = HttpMethod.GET
    body: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    auth: AuthConfig = field(default_factory=AuthConfig)
    headers: tuple[str, ...] = ()
    ramping: RampingConfig = field(default_factory=RampingConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    warmup_seconds: int = 0
    cooldown_seconds: int = 0
    report_dir: str | None = None
    report_name: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str = ""

    def to_metadata(self) -> Mapping[str, Any]:
        # Credentials are never persisted, only the auth scheme.
        return {
            "created_at": self.created_at.isoformat(),
            "urls": list(self.urls),
            "method": self.method.value,
            "body": self.body,
            "user_agent": self.user_agent,
            "auth_type": self.auth.auth_type.value,
            "headers": list(self.headers),
            "ramping": {
                "mode": self.ramping.mode.value,
                "start_rate": self.ramping.start_rate,
                "max_rate": self.ramping.max_rate,
                "step": self.ramping.step,
                "duration_seconds": self.ramping.duration_seconds,
                "connections": self.ramping.connections,
            },
            "thresholds": {
                "max_error_rate": self.thresholds.max_error_rate,
                "max_p99_ms": self.thresholds.max_p99_ms,
            },
            "warmup_seconds": self.warmup_seconds,
            "cooldown_seconds": self.cooldown_seconds,
            "notes": self.notes,
        }


def ensure_protocol(url: str) -> str:
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"https://{url}"
