"""Error taxonomy for catalog extraction runs."""


class ExtractionError(Exception):
    """Base class for all extraction pipeline errors."""

    pass


class TransientServiceError(ExtractionError):
    """The inference service is rate limited or temporarily overloaded."""

    pass


class PermanentServiceError(ExtractionError):
    """The inference service rejected the request in a way retrying won't fix."""

    pass


class ParseError(ExtractionError):
    """The inference response is not valid structured data."""

    pass


class RasterizationError(ExtractionError):
    """A document page could not be rendered to an image."""

    def __init__(self, page_index: int, message: str):
        super().__init__(f"Failed to render page {page_index + 1}: {message}")
        self.page_index = page_index


class RunFatalError(ExtractionError):
    """The whole run is meaningless, e.g. the document cannot be opened."""

    pass
