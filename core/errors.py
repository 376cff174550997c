"""Central error taxonomy enforcement.

Every ``error_type`` carried by an event or counted by a metric must be one
of the codes below so dashboards do not drift on spelling.
"""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # module.load
    "import-failed",
    "legacy-load-failed",
    "legacy-export-missing",
    "stub-missing",
    # module.init / prefetch
    "init-failed",
    "prefetch-failed",
    # config
    "config-out-of-range",
    "config-invalid",
    # ai
    "ai-request-failed",
    "ai-invalid-response",
    # auth
    "auth-invalid-credentials",
    "auth-user-exists",
    "auth-invalid-input",
    # infra
    "event-handler-error",
}


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: Exception, phase: str) -> str:
    name = e.__class__.__name__.lower()
    msg = str(e).lower()
    if phase == "module.import":
        return "import-failed"
    if phase == "module.legacy":
        if "export" in msg or isinstance(e, AttributeError):
            return "legacy-export-missing"
        return "legacy-load-failed"
    if phase == "module.init":
        return "init-failed"
    if phase == "ai":
        if "invalid response" in msg or "keyerror" in name:
            return "ai-invalid-response"
        return "ai-request-failed"
    return "event-handler-error"


__all__ = ["validate_error_type", "map_exception"]
