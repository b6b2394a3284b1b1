from __future__ import annotations

import base64

from rampbench.config.models import AuthConfig, AuthType


def render_auth_header(auth: AuthConfig) -> str | None:
    """Render the full ``Name: value`` header line for the configured auth scheme."""
    if auth.auth_type is AuthType.BASIC:
        credentials = f"{auth.username or ''}:{auth.password or ''}"
        encoded = base64.b64encode(credentials.encode()).decode("ascii")
        return f"Authorization: Basic {encoded}"
    if auth.auth_type is AuthType.BEARER:
        return f"Authorization: Bearer {auth.token or ''}"
    if auth.auth_type is AuthType.HEADER:
        return auth.custom_header
    return None
