class AnalysisPipelineError(Exception):
    """Base class for every error raised by the analysis pipeline."""


class InputError(AnalysisPipelineError):
    """Caller supplied text that cannot be analysed."""


class SchemaValidationError(AnalysisPipelineError):
    """
    Analyzer response is missing a required field or has the wrong shape.

    `field` is a dotted path into the raw response, e.g. `patterns[2].severity`.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class AnalyzerUnavailableError(AnalysisPipelineError):
    """External analyzer failed or timed out."""


class StorageError(AnalysisPipelineError):
    """Durable key-value storage could not be read or written."""
