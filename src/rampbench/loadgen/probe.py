from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from rampbench.config import BenchmarkConfig, render_auth_header

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SEC = 10.0


@dataclass(frozen=True, slots=True)
class ProbeResult:
    url: str
    status_code: int | None
    latency_ms: float
    error: str | None = None

    @property
    def reachable(self) -> bool:
        return self.status_code is not None


def _probe_headers(config: BenchmarkConfig) -> dict[str, str]:
    lines = [f"User-Agent: {config.user_agent}"]
    auth_header = render_auth_header(config.auth)
    if auth_header:
        lines.append(auth_header)
    lines.extend(config.headers)
    headers: dict[str, str] = {}
    for line in lines:
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip()] = value.strip()
    return headers


async def probe_target(
    client: httpx.AsyncClient,
    config: BenchmarkConfig,
    url: str,
    timeout_sec: float = PROBE_TIMEOUT_SEC,
) -> ProbeResult:
    """Send one request so a mistyped URL fails fast instead of after a whole ramp."""
    start = time.perf_counter()
    try:
        resp = await client.request(
            config.method.value,
            url,
            headers=_probe_headers(config),
            content=config.body,
            timeout=timeout_sec,
        )
    except httpx.TimeoutException:
        err = "timeout"
    except httpx.ConnectError as exc:
        err = f"connect error: {exc}"
    except httpx.HTTPError as exc:
        err = f"{type(exc).__name__}: {exc}"
    else:
        latency_ms = (time.perf_counter() - start) * 1000.0
        logger.info("Probe %s -> %d in %.0fms", url, resp.status_code, latency_ms)
        return ProbeResult(url=url, status_code=resp.status_code, latency_ms=latency_ms)
    latency_ms = (time.perf_counter() - start) * 1000.0
    logger.warning("Probe %s failed: %s", url, err)
    return ProbeResult(url=url, status_code=None, latency_ms=latency_ms, error=err)


async def probe_targets(config: BenchmarkConfig) -> list[ProbeResult]:
    async with httpx.AsyncClient(follow_redirects=True) as client:
        return [await probe_target(client, config, url) for url in config.urls]
