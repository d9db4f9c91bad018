import json
import math
import re
from typing import Any, List, Union

from .errors import ErrorCode, JsonPathError

# ==============================================================================
# JSON Value Coercions
# ==============================================================================

# Longest leading decimal number, as strtod reads it (no hex, inf or nan).
_NUMBER_PREFIX = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")


def as_number(value: Any) -> float:
    """
    Coerces a JSON value to a float.

    Integers and floats convert directly, booleans become 1.0 or 0.0, null
    becomes 0.0 and strings are read up to the end of their leading decimal number
    (a string with no leading number yields 0.0). Integers too large for a
    float become +/-inf.

    Args:
        value (Any): The JSON value to coerce.

    Returns:
        float: The numeric value.

    Raises:
        JsonPathError: If the value is an object or an array.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, float):
        return value
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            # integers past the float range saturate like IEEE-754 overflow
            return math.copysign(math.inf, value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return 0.0
        return float(match.group(1))
    raise JsonPathError(
        ErrorCode.INVALID_FUNCTION_ARGUMENT,
        f"Cannot convert {type(value).__name__} to a number"
    )


def as_string(value: Any) -> str:
    """
    Coerces a JSON value to a string.

    Strings are returned as is; every other value is serialized as JSON text.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(',', ':'))


# ==============================================================================
# JSON Value Constructors
# ==============================================================================

def json_null() -> None:
    return None


def json_array() -> List[Any]:
    return []


def json_number(x: Union[int, float]) -> Union[int, float]:
    # bool is an int subclass but is not a JSON number
    if isinstance(x, bool):
        return int(x)
    return x


def push_back(array: List[Any], value: Any) -> List[Any]:
    """Appends a value to a JSON array and returns the array."""
    if not isinstance(array, list):
        raise JsonPathError(ErrorCode.INVALID_FUNCTION_ARGUMENT, "push_back requires an array")
    array.append(value)
    return array
