from __future__ import annotations

from rampbench.config.auth import render_auth_header
from rampbench.config.models import (
    DEFAULT_USER_AGENT,
    AuthConfig,
    AuthType,
    BenchmarkConfig,
    HttpMethod,
    RampingConfig,
    RampingMode,
    ThresholdConfig,
    ensure_protocol,
)
from rampbench.config.user_agents import preset_names, resolve_user_agent

__all__ = [
    "DEFAULT_USER_AGENT",
    "AuthConfig",
    "AuthType",
    "BenchmarkConfig",
    "HttpMethod",
    "RampingConfig",
    "RampingMode",
    "ThresholdConfig",
    "ensure_protocol",
    "preset_names",
    "render_auth_header",
    "resolve_user_agent",
]
