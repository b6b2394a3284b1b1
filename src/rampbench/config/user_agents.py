from __future__ import annotations

from dataclasses import dataclass

from rampbench.config.models import DEFAULT_USER_AGENT


@dataclass(frozen=True, slots=True)
class UserAgentPreset:
    name: str
    value: str
    aliases: tuple[str, ...] = ()


PRESETS: tuple[UserAgentPreset, ...] = (
    UserAgentPreset("rampbench (Default)", DEFAULT_USER_AGENT, ("rampbench", "default")),
    UserAgentPreset(
        "Chrome (Windows)",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        ("chrome-windows", "chrome-win"),
    ),
    UserAgentPreset(
        "Chrome (macOS)",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        ("chrome-macos", "chrome-mac"),
    ),
    UserAgentPreset(
        "Chrome (Linux)",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        ("chrome-linux", "chrome"),
    ),
    UserAgentPreset(
        "Firefox (Windows)",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        ("firefox-windows", "firefox-win"),
    ),
    UserAgentPreset(
        "Firefox (macOS)",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
        ("firefox-macos", "firefox-mac"),
    ),
    UserAgentPreset(
        "Firefox (Linux)",
        "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
        ("firefox-linux", "firefox"),
    ),
    UserAgentPreset(
        "Safari (macOS)",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.2 Safari/605.1.15",
        ("safari-macos", "safari-mac", "safari"),
    ),
    UserAgentPreset(
        "Safari (iOS)",
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/17.2 Mobile/15E148 Safari/604.1",
        ("safari-ios", "safari-iphone"),
    ),
    UserAgentPreset(
        "Edge (Windows)",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
        ("edge", "edge-windows"),
    ),
    UserAgentPreset("curl", "curl/8.5.0", ("curl",)),
    UserAgentPreset(
        "Googlebot",
        "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
        ("googlebot", "google"),
    ),
)


def resolve_user_agent(name: str) -> str:
    """Map a preset name or alias to its user-agent string; anything else is used verbatim."""
    key = name.strip().lower()
    for preset in PRESETS:
        if key == preset.name.lower() or key in preset.aliases:
            return preset.value
    return name


def preset_names() -> list[str]:
    return [preset.name for preset in PRESETS]
