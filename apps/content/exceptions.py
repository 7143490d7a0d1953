class PaperplaneError(Exception):
    """Base class for every error raised by the question pipeline."""


class ConfigurationError(PaperplaneError):
    """A required setting (API key, bucket, OIDC value) is missing."""


class ExtractionError(PaperplaneError):
    """The model gave no usable answer for the markdown."""


class ParseError(PaperplaneError):
    """The model answer contained a JSON array that could not be read."""


class NetworkError(PaperplaneError):
    """An outbound HTTP call failed."""


class ValidationError(PaperplaneError):
    """A question is not in a state that can be stored."""
