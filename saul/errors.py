"""saul errors - exception types surfaced to the CLI layer.

All errors inherit from SaulError so the CLI can catch them in one place.
Messages name the missing or invalid entity.
"""


class SaulError(Exception):
    """Base exception for all saul failures."""


# ── Not found ────────────────────────────────────────────────────────────


class NotFoundError(SaulError):
    """A preset, variant, key or history entry is absent."""


class PresetNotFoundError(NotFoundError):
    def __init__(self, preset: str):
        self.preset = preset
        super().__init__(f"Preset '{preset}' not found.")


class VariantNotFoundError(NotFoundError):
    def __init__(self, preset: str, variant: str):
        self.preset = preset
        self.variant = variant
        super().__init__(f"Variant '{variant}' does not exist in preset '{preset}'.")


class VariantPresetMissingError(NotFoundError):
    """Raised when addressing base/variant and the base preset is missing."""

    def __init__(self, preset: str):
        self.preset = preset
        super().__init__(
            f"Preset '{preset}' does not exist. Create it before adding variants."
        )


class KeyNotFoundError(NotFoundError):
    def __init__(self, key: str, target: str):
        self.key = key
        self.target = target
        super().__init__(f"Key '{key}' not found in {target}.")


class HistoryNotFoundError(NotFoundError):
    pass


# ── Validation ───────────────────────────────────────────────────────────


class ValidationError(SaulError):
    """User-supplied value rejected before any write or network call."""


# ── IO ───────────────────────────────────────────────────────────────────


class StorageError(SaulError):
    """Filesystem or document parse failure, wrapped with operation and target."""

    def __init__(self, operation: str, target, reason):
        self.operation = operation
        self.target = str(target)
        self.reason = reason
        super().__init__(f"Failed to {operation} {self.target}: {reason}")


# ── Request ──────────────────────────────────────────────────────────────


class RequestBuildError(SaulError):
    """The request is malformed; nothing was sent."""


class MissingURLError(RequestBuildError):
    def __init__(self):
        super().__init__("URL is required. Set it with: saul <preset> set url <http(s)://...>")


class RequestFailedError(SaulError):
    """The request was sent but the transport failed."""
