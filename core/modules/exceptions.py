"""Module loading exception hierarchy.

These never escape `ModuleLoader.load_module`; they travel between the
resolution stages and end up as taxonomy codes on events.
"""


class ModuleLoadError(Exception):
    """Base module resolution failure."""

    error_type = "import-failed"

    def __init__(self, message: str, error_type: str | None = None) -> None:
        super().__init__(message)
        if error_type is not None:
            self.error_type = error_type


class LegacyLoadError(ModuleLoadError):
    """Legacy file missing, failed to execute, or lacks its export."""

    error_type = "legacy-load-failed"
