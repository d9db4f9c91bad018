import importlib.util
import logging
import os
import re
import sys
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import ErrorCode, JsonPathError
from .values import as_number, as_string, json_array, json_null, json_number, push_back

logger = logging.getLogger(__name__)

_FLOAT_MAX = sys.float_info.max
_FLOAT_LOWEST = -sys.float_info.max


# ==============================================================================
# Node Sets
# ==============================================================================

class NodeSet:
    """
    An ordered, immutable sequence of nodes selected from a JSON document.

    Nodes are the document's own objects; a node set never copies them.
    """

    __slots__ = ("_nodes",)

    def __init__(self, nodes: Iterable[Any] = ()):
        self._nodes = tuple(nodes)

    @property
    def nodes(self) -> Tuple[Any, ...]:
        return self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._nodes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, NodeSet):
            return NotImplemented
        return self._nodes == other._nodes

    def __repr__(self) -> str:
        return f"NodeSet({list(self._nodes)!r})"


Function = Callable[[Sequence[NodeSet]], Any]


def _require_arity(name: str, args: Sequence[NodeSet], arity: int) -> None:
    if len(args) != arity:
        raise JsonPathError(
            ErrorCode.INVALID_FUNCTION_ARGUMENT,
            f"Function '{name}' expects {arity} argument(s), got {len(args)}"
        )


def _first_string(name: str, arg: NodeSet, position: int) -> str:
    if len(arg) == 0:
        raise JsonPathError(
            ErrorCode.INVALID_FUNCTION_ARGUMENT,
            f"Function '{name}' argument {position} selects no nodes"
        )
    return as_string(arg.nodes[0])


# ==============================================================================
# Built-in Functions
# ==============================================================================

def _make_max(strict: bool) -> Function:
    def max_(args: Sequence[NodeSet]) -> float:
        _require_arity("max", args, 1)
        if strict and len(args[0]) == 0:
            raise JsonPathError(ErrorCode.INVALID_FUNCTION_ARGUMENT, "Function 'max' applied to an empty node set")
        v = _FLOAT_LOWEST
        for node in args[0]:
            x = as_number(node)
            if x > v:
                v = x
        return json_number(v)
    return max_


def _make_min(strict: bool) -> Function:
    def min_(args: Sequence[NodeSet]) -> float:
        _require_arity("min", args, 1)
        if strict and len(args[0]) == 0:
            raise JsonPathError(ErrorCode.INVALID_FUNCTION_ARGUMENT, "Function 'min' applied to an empty node set")
        v = _FLOAT_MAX
        for node in args[0]:
            x = as_number(node)
            if x < v:
                v = x
        return json_number(v)
    return min_


def _avg(args: Sequence[NodeSet]) -> Optional[float]:
    _require_arity("avg", args, 1)
    arg = args[0]
    if len(arg) == 0:
        return json_null()
    v = 0.0
    for node in arg:
        v += as_number(node)
    return json_number(v / len(arg))


def _sum(args: Sequence[NodeSet]) -> float:
    _require_arity("sum", args, 1)
    v = 0.0
    for node in args[0]:
        v += as_number(node)
    return json_number(v)


def _count(args: Sequence[NodeSet]) -> int:
    _require_arity("count", args, 1)
    return json_number(len(args[0]))


def _prod(args: Sequence[NodeSet]) -> float:
    """
    Multiplies the coerced values of the node set.

    The accumulator starts at 0.0 and takes the first non-zero value as is,
    so zeros seen before that value are ignored: prod([0, 2, 3]) is 6.0.
    """
    _require_arity("prod", args, 1)
    v = 0.0
    for node in args[0]:
        x = as_number(node)
        if v == 0.0 and x != 0.0:
            v = x
        else:
            v *= x
    return json_number(v)


def _tokenize(args: Sequence[NodeSet]) -> List[str]:
    """
    Splits a string on a regular expression.

    Returns the text between successive matches. Text after the last match is
    kept only when it is not empty, except that a subject with no match at all
    (including the empty string) is returned as a single token.
    """
    _require_arity("tokenize", args, 2)
    subject = _first_string("tokenize", args[0], 0)
    pattern = _first_string("tokenize", args[1], 1)
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise JsonPathError(
            ErrorCode.INVALID_FUNCTION_ARGUMENT,
            f"Function 'tokenize' received an invalid regular expression '{pattern}': {e}"
        ) from e

    tokens = json_array()
    start = 0
    matched = False
    for match in regex.finditer(subject):
        matched = True
        push_back(tokens, subject[start:match.start()])
        start = match.end()
    suffix = subject[start:]
    if not matched or suffix:
        push_back(tokens, suffix)
    return tokens


def builtin_functions(strict_extrema: bool = False) -> Dict[str, Function]:
    """
    Returns the built-in function dictionary.

    Args:
        strict_extrema (bool): When True, 'max' and 'min' report an invalid
            argument on an empty node set instead of returning the float extrema.

    Returns:
        Dict[str, Function]: Function names mapped to their bodies.
    """
    return {
        "max": _make_max(strict_extrema),
        "min": _make_min(strict_extrema),
        "avg": _avg,
        "sum": _sum,
        "count": _count,
        "prod": _prod,
        "tokenize": _tokenize,
    }


# ==============================================================================
# Function Table
# ==============================================================================

class FunctionTable:
    """
    An immutable mapping from function names to functions over node sets.

    Names are case-sensitive. Registering a function returns a new table, so a
    table can be shared between threads without locking.
    """

    def __init__(self, functions: Optional[Dict[str, Callable]] = None, strict_extrema: bool = False):
        table = builtin_functions(strict_extrema)
        for name, func in (functions or {}).items():
            if not callable(func):
                raise ValueError(f"Function '{name}' is not callable")
            table[name] = func
        self._functions = table
        self._strict_extrema = strict_extrema

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def names(self) -> List[str]:
        return sorted(self._functions)

    def register(self, name: str, func: Callable, arity: Optional[int] = None) -> "FunctionTable":
        """
        Returns a new table with an additional (or replaced) function.

        Args:
            name (str): The function name used in JSONPath expressions.
            func (Callable): A callable taking the list of argument node sets.
            arity (Optional[int]): If given, calls with a different number of
                arguments report an invalid argument before reaching func.

        Returns:
            FunctionTable: The extended table.
        """
        if not callable(func):
            raise ValueError(f"Function '{name}' is not callable")
        if arity is not None:
            body = func

            def func(args: Sequence[NodeSet]) -> Any:
                _require_arity(name, args, arity)
                return body(args)

        functions = dict(self._functions)
        functions[name] = func
        return FunctionTable(functions, self._strict_extrema)

    def lookup(self, name: str) -> Tuple[Optional[Callable], Optional[ErrorCode]]:
        """
        Finds a function by name.

        Returns:
            Tuple[Optional[Callable], Optional[ErrorCode]]: The function and None,
            or None and ErrorCode.FUNCTION_NAME_NOT_FOUND.
        """
        func = self._functions.get(name)
        if func is None:
            logger.debug(f"JSONPath function not found: {name}")
            return None, ErrorCode.FUNCTION_NAME_NOT_FOUND
        return func, None

    def invoke(self, function: Union[str, Callable], args: Sequence[NodeSet]) -> Tuple[Any, Optional[ErrorCode]]:
        """
        Invokes a function and reports errors as a code instead of raising.

        Args:
            function (Union[str, Callable]): A function name or a function
                previously returned by lookup().
            args (Sequence[NodeSet]): The argument node sets.

        Returns:
            Tuple[Any, Optional[ErrorCode]]: The result and None on success,
            or None and the error code.
        """
        if isinstance(function, str):
            func, error = self.lookup(function)
            if error is not None:
                return None, error
        else:
            func = function
        try:
            return func(args), None
        except JsonPathError as e:
            logger.warning(f"JSONPath function call failed: {e}")
            return None, e.code

    def call(self, name: str, args: Sequence[NodeSet]) -> Any:
        """
        Invokes a function by name, raising JsonPathError on failure.
        """
        func, error = self.lookup(name)
        if error is not None:
            raise JsonPathError(error, f"Unknown JSONPath function: '{name}'")
        return func(args)


_DEFAULT_TABLE = FunctionTable()


def default_function_table() -> FunctionTable:
    """Returns the process-wide table holding only the built-in functions."""
    return _DEFAULT_TABLE


# ==============================================================================
# Custom Function Loading
# ==============================================================================

def load_custom_functions(file_path: str) -> Dict[str, Callable]:
    """
    Safely loads a Python module from a given file path and returns its
    public callables, keyed by name. Each callable receives the list of
    argument node sets.

    Args:
        file_path (str): Path to the Python file with custom functions.

    Returns:
        Dict[str, Callable]: Dictionary of function names to callable functions.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Custom function file not found at: {file_path}")

    spec = importlib.util.spec_from_file_location("custom_jsonpath_functions_module", file_path)
    if spec is None:
        raise ImportError(f"Could not load module specification from {file_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["custom_jsonpath_functions_module"] = module
    spec.loader.exec_module(module)

    functions = {
        name: func for name, func in module.__dict__.items()
        if callable(func) and not name.startswith("_")
        and getattr(func, "__module__", None) == module.__name__
    }
    logger.debug(f"Loaded {len(functions)} custom JSONPath function(s) from {file_path}")
    return functions
