"""Domain errors raised by the grimoire state, content and report layers."""


class GrimoireValidationError(ValueError):
    """Rejected input; raised before any state is changed."""


class DuplicateError(GrimoireValidationError):
    """A favorite or category with the same case-insensitive name already exists."""


class NotFoundError(LookupError):
    pass


class ConfirmationRequiredError(RuntimeError):
    """A destructive action was requested without explicit confirmation."""


class ContentServiceError(RuntimeError):
    """Lore or image generation failed; the message is safe to show to users."""


class PageRenderError(RuntimeError):
    """A report page could not be laid out or rasterized."""
