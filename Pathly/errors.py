from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Error kinds reported by the function table, the codec and the query evaluator."""
    INVALID_FUNCTION_ARGUMENT = "Invalid function argument"
    FUNCTION_NAME_NOT_FOUND = "Function name not found"
    INVALID_BASE64 = "Invalid base64"
    INVALID_JSONPATH = "Invalid JSONPath expression"


class JsonPathError(ValueError):
    """
    Raised when a JSONPath expression or one of its functions cannot be evaluated.

    Attributes:
        code (ErrorCode): The kind of error.
    """

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code.value)


class InvalidBase64Error(JsonPathError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(ErrorCode.INVALID_BASE64, message)
