"""
Error types raised by the paste core.
Routes translate these into HTTP responses.
"""


class PasteError(Exception):
    """Base class for paste errors."""


class ValidationError(PasteError):
    """Create request carried bad content, ttl_seconds or max_views."""


class DuplicateIdError(PasteError):
    """A paste with the same id already exists."""

    def __init__(self, paste_id: str):
        super().__init__(f"Paste id already in use: {paste_id}")
        self.paste_id = paste_id


class GenerationExhaustedError(PasteError):
    """No free id was found within the retry bound."""


class PasteNotFound(PasteError):
    """Paste never existed or is no longer alive."""

    def __init__(self, paste_id: str):
        super().__init__(f"Paste not found: {paste_id}")
        self.paste_id = paste_id


class StoreUnavailable(PasteError):
    """Backing store is unreachable or timed out."""
