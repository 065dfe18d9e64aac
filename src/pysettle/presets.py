"""Compiled-in registries.

Presets are stored as plain entry mappings so that the identity scope can
be bound to whichever user is resolved at run time.
"""

from __future__ import annotations

from .errors import ConfigurationError
from .registry import Registry, registry_from_document
from .scope import Identity

_SUBMIT_DIAG = "/Library/Preferences/com.apple.SubmitDiagInfo"
_SOFTWARE_UPDATE = "/Library/Preferences/com.apple.SoftwareUpdate"

# Telemetry off, automatic update checks and downloads on.
PRIVACY = [
    {"scope": "system", "domain": _SUBMIT_DIAG, "key": "AutoSubmit", "desired": False},
    {"scope": "identity", "domain": "com.apple.CrashReporter", "key": "DialogType", "desired": "none"},
    {"scope": "system", "domain": _SOFTWARE_UPDATE, "key": "AutomaticCheckEnabled", "desired": True},
    {"scope": "system", "domain": _SOFTWARE_UPDATE, "key": "AutomaticDownload", "desired": True},
    {"scope": "identity", "domain": "com.apple.assistant.support", "key": "Assistant Enabled", "desired": False},
    {"scope": "identity", "domain": "com.apple.Siri", "key": "StatusMenuVisible", "desired": False},
    {"scope": "identity", "domain": "com.apple.lookup.shared", "key": "LookupSuggestionsDisabled", "desired": True},
    {"scope": "identity", "domain": "com.apple.UsageTracking", "key": "CoreDonationsEnabled", "desired": False},
    {"scope": "identity", "domain": "com.apple.UsageTracking", "key": "UDCAutomationEnabled", "desired": False},
]

PRESETS: dict[str, list[dict]] = {
    "privacy": PRIVACY,
}

DEFAULT_PRESET = "privacy"


def preset_registry(name: str, identity: Identity | None) -> Registry:
    """Return the compiled-in registry called *name* bound to *identity*."""
    try:
        entries = PRESETS[name]
    except KeyError as exc:
        raise ConfigurationError(
            f"unknown preset {name!r}; choose from {', '.join(sorted(PRESETS))}"
        ) from exc
    return registry_from_document(entries, identity, name=name)
