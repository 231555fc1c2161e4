"""Exception taxonomy for the matching engine.

None of these end a conversation. The orchestrator turns each one into
either a question for the user or a decision to keep what it already knows.
"""


class SpaceMatchError(Exception):
    """Base class for all engine errors."""


class ClassificationAmbiguous(SpaceMatchError):
    """Speaker could not be classified as brand or owner."""


class DisambiguationNeeded(SpaceMatchError):
    """A bare number has more than one plausible reading."""

    def __init__(self, raw_number: float, options: list[str]):
        self.raw_number = raw_number
        self.options = options
        super().__init__(
            f"Cannot interpret {raw_number:g} without clarification: {', '.join(options)}"
        )


class ExtractionFailure(SpaceMatchError):
    """The extraction service failed or returned unusable output."""


class ParseError(ExtractionFailure):
    """Extraction output did not match the requirements schema."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class MissingCriticalField(SpaceMatchError):
    """A field required before searching or redirecting is still empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing critical field: {field}")


class SearchBoundaryFailure(SpaceMatchError):
    """The candidate-listing source could not be queried."""
