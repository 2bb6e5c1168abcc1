class QuizServiceError(Exception):
    """Base error for failures that abort a request with a JSON error body"""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(QuizServiceError):
    """Raised when required environment configuration is missing"""

    status_code = 500


class FetchError(QuizServiceError):
    """Material could not be downloaded from the given URL"""


class UpstreamError(QuizServiceError):
    """The language model call did not complete successfully"""


class MalformedResponseError(QuizServiceError):
    """The language model answered with something that is not the expected JSON object"""

    status_code = 502

    def __init__(self, detail: str = ""):
        super().__init__("Invalid AI response")
        self.detail = detail


class SchemaViolation(QuizServiceError):
    """An assembled quiz failed canonical validation"""


def describe_validation_errors(errors) -> str:
    """Flatten pydantic error dicts into one human-readable line"""
    parts = []
    for err in errors:
        location = ".".join(str(loc) for loc in err.get("loc", ()) if loc != "body")
        message = err.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"
