import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from .errors import ErrorCode, JsonPathError
from .functions import FunctionTable, NodeSet, default_function_table, load_custom_functions

logger = logging.getLogger(__name__)

# ==============================================================================
# Tokenizer
# ==============================================================================

_TOKEN_PATTERN = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<op>\.\.|==|!=|<=|>=|&&|\|\||[$@.\[\]()*?,:<>!])
  | (?P<name>[^\W\d][\w\-]*)
""", re.VERBOSE)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "/": "/", "\\": "\\", "'": "'", '"': '"'}

_END = ("end", None)


def _unquote(text: str) -> str:
    body = text[1:-1]
    result = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt == "u" and re.fullmatch(r"[0-9a-fA-F]{4}", body[i + 2:i + 6]):
                result.append(chr(int(body[i + 2:i + 6], 16)))
                i += 6
                continue
            result.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        result.append(ch)
        i += 1
    return "".join(result)


def _tokenize_path(path: str) -> List[Tuple[str, Any]]:
    """
    Splits a JSONPath expression into (kind, value) tokens.

    Raises:
        JsonPathError: If the expression contains an unexpected character.
    """
    tokens = []
    pos = 0
    while pos < len(path):
        match = _TOKEN_PATTERN.match(path, pos)
        if not match:
            raise JsonPathError(
                ErrorCode.INVALID_JSONPATH,
                f"Unexpected character {path[pos]!r} at position {pos} in '{path}'"
            )
        kind = match.lastgroup
        text = match.group()
        pos = match.end()
        if kind == "ws":
            continue
        if kind == "number":
            value = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(("number", value))
        elif kind == "string":
            tokens.append(("string", _unquote(text)))
        else:
            tokens.append((kind, text))
    tokens.append(_END)
    return tokens


# ==============================================================================
# Parser
# ==============================================================================
#
# Expressions are parsed into tuples:
#   ("path", "$" | "@", [selector, ...])
#   ("literal", value)
#   ("call", name, [expr, ...])
#   ("not", expr) / ("and", lhs, rhs) / ("or", lhs, rhs)
#   ("cmp", op, lhs, rhs)
#
# Selectors:
#   ("wildcard",)
#   ("union", [("name", str) | ("index", int) | ("slice", start, stop, step), ...])
#   ("filter", expr)
#   ("descend", selector)

_LITERAL_NAMES = {"true": True, "false": False, "null": None}
_COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")


class _Parser:
    def __init__(self, path: str):
        self.path = path
        self.tokens = _tokenize_path(path)
        self.pos = 0

    def peek(self, offset: int = 0) -> Tuple[str, Any]:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def next(self) -> Tuple[str, Any]:
        token = self.peek()
        self.pos += 1
        return token

    def at(self, kind: str, value: Any = None) -> bool:
        token = self.peek()
        return token[0] == kind and (value is None or token[1] == value)

    def accept(self, kind: str, value: Any = None) -> bool:
        if self.at(kind, value):
            self.pos += 1
            return True
        return False

    def expect(self, kind: str, value: Any = None) -> Tuple[str, Any]:
        if not self.at(kind, value):
            self.error(f"expected {value or kind}")
        return self.next()

    def error(self, message: str):
        kind, value = self.peek()
        found = "end of expression" if kind == "end" else repr(value)
        raise JsonPathError(ErrorCode.INVALID_JSONPATH, f"Invalid JSONPath '{self.path}': {message}, found {found}")

    def parse(self) -> tuple:
        expr = self.parse_or()
        if not self.at("end"):
            self.error("unexpected token")
        return expr

    def parse_or(self) -> tuple:
        lhs = self.parse_and()
        while self.accept("op", "||"):
            lhs = ("or", lhs, self.parse_and())
        return lhs

    def parse_and(self) -> tuple:
        lhs = self.parse_unary()
        while self.accept("op", "&&"):
            lhs = ("and", lhs, self.parse_unary())
        return lhs

    def parse_unary(self) -> tuple:
        if self.accept("op", "!"):
            return ("not", self.parse_unary())
        lhs = self.parse_operand()
        kind, value = self.peek()
        if kind == "op" and value in _COMPARISON_OPS:
            self.next()
            return ("cmp", value, lhs, self.parse_operand())
        return lhs

    def parse_operand(self) -> tuple:
        kind, value = self.peek()
        if kind == "op" and value == "(":
            self.next()
            expr = self.parse_or()
            self.expect("op", ")")
            return expr
        if kind == "op" and value in ("$", "@"):
            self.next()
            return ("path", value, self.parse_selectors())
        if kind in ("number", "string"):
            self.next()
            return ("literal", value)
        if kind == "name":
            self.next()
            if self.accept("op", "("):
                return ("call", value, self.parse_arguments())
            if value in _LITERAL_NAMES:
                return ("literal", _LITERAL_NAMES[value])
            self.pos -= 1
        self.error("expected a path, literal or function call")

    def parse_arguments(self) -> List[tuple]:
        args = []
        if self.accept("op", ")"):
            return args
        while True:
            args.append(self.parse_or())
            if self.accept("op", ")"):
                return args
            self.expect("op", ",")

    def parse_selectors(self) -> List[tuple]:
        selectors = []
        while True:
            if self.accept("op", "."):
                selectors.append(self.parse_member())
            elif self.accept("op", ".."):
                if self.at("op", "["):
                    selectors.append(("descend", self.parse_bracket()))
                else:
                    selectors.append(("descend", self.parse_member()))
            elif self.at("op", "["):
                selectors.append(self.parse_bracket())
            else:
                return selectors

    def parse_member(self) -> tuple:
        if self.accept("op", "*"):
            return ("wildcard",)
        kind, value = self.peek()
        if kind in ("name", "string"):
            self.next()
            return ("union", [("name", value)])
        if kind == "number" and isinstance(value, int) and value >= 0:
            # dotted numeric members such as $.0 address object keys
            self.next()
            return ("union", [("name", str(value))])
        self.error("expected a member name")

    def parse_bracket(self) -> tuple:
        self.expect("op", "[")
        if self.accept("op", "*"):
            self.expect("op", "]")
            return ("wildcard",)
        if self.accept("op", "?"):
            self.expect("op", "(")
            expr = self.parse_or()
            self.expect("op", ")")
            self.expect("op", "]")
            return ("filter", expr)
        items = [self.parse_union_item()]
        while self.accept("op", ","):
            items.append(self.parse_union_item())
        self.expect("op", "]")
        return ("union", items)

    def parse_union_item(self) -> tuple:
        kind, value = self.peek()
        if kind in ("string", "name"):
            self.next()
            return ("name", value)
        bounds = [None, None, None]
        slot = 0
        is_slice = False
        while True:
            kind, value = self.peek()
            if kind == "number":
                if not isinstance(value, int):
                    self.error("expected an integer index")
                if bounds[slot] is not None:
                    self.error("expected ':'")
                bounds[slot] = value
                self.next()
            elif kind == "op" and value == ":":
                if slot == 2:
                    self.error("too many ':' in slice")
                is_slice = True
                slot += 1
                self.next()
            else:
                break
        if not is_slice:
            if bounds[0] is None:
                self.error("expected an index, name or slice")
            return ("index", bounds[0])
        if bounds[2] == 0:
            self.error("slice step cannot be zero")
        return ("slice", bounds[0], bounds[1], bounds[2])


def parse_jsonpath(path: str) -> tuple:
    """
    Parses a JSONPath expression into an expression tree.

    Args:
        path (str): The JSONPath expression, e.g. "$.store.book[*].price" or
            "sum($..price)".

    Returns:
        tuple: The parsed expression tree.

    Raises:
        JsonPathError: If the expression is not valid.
    """
    if not isinstance(path, str) or not path.strip():
        raise JsonPathError(ErrorCode.INVALID_JSONPATH, "JSONPath expression must be a non-empty string")
    return _Parser(path).parse()


# ==============================================================================
# Evaluation
# ==============================================================================

_MISSING = object()


def _children(value: Any) -> Iterator[Any]:
    if isinstance(value, dict):
        yield from value.values()
    elif isinstance(value, list):
        yield from value


def _descendants(value: Any) -> Iterator[Any]:
    """Yields the value and every value nested in it, in document order."""
    yield value
    for child in _children(value):
        yield from _descendants(child)


def _select_item(value: Any, item: tuple) -> Iterator[Any]:
    kind = item[0]
    if kind == "name":
        if isinstance(value, dict) and item[1] in value:
            yield value[item[1]]
    elif kind == "index":
        if isinstance(value, list):
            index = item[1]
            if -len(value) <= index < len(value):
                yield value[index]
    elif kind == "slice":
        if isinstance(value, list):
            yield from value[slice(item[1], item[2], item[3])]


def _apply_selector(nodes: List[Any], selector: tuple, context: "_Context") -> List[Any]:
    kind = selector[0]
    result = []
    if kind == "wildcard":
        for node in nodes:
            result.extend(_children(node))
    elif kind == "union":
        for node in nodes:
            for item in selector[1]:
                result.extend(_select_item(node, item))
    elif kind == "filter":
        for node in nodes:
            for child in _children(node):
                if _truthy(_evaluate(selector[1], context, child)):
                    result.append(child)
    elif kind == "descend":
        for node in nodes:
            for descendant in _descendants(node):
                result.extend(_apply_selector([descendant], selector[1], context))
    return result


def _truthy(value: Any) -> bool:
    if isinstance(value, NodeSet):
        return len(value) > 0
    if value is _MISSING:
        return False
    return bool(value)


def _operand_value(value: Any) -> Any:
    if isinstance(value, NodeSet):
        if len(value) == 0:
            return _MISSING
        if len(value) == 1:
            return value.nodes[0]
        return list(value.nodes)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _compare(op: str, lhs: Any, rhs: Any) -> bool:
    lhs = _operand_value(lhs)
    rhs = _operand_value(rhs)
    if lhs is _MISSING or rhs is _MISSING:
        return op == "!=" and not (lhs is _MISSING and rhs is _MISSING)
    if op == "==":
        return lhs == rhs and isinstance(lhs, bool) == isinstance(rhs, bool)
    if op == "!=":
        return not (lhs == rhs and isinstance(lhs, bool) == isinstance(rhs, bool))
    comparable = (_is_number(lhs) and _is_number(rhs)) or (isinstance(lhs, str) and isinstance(rhs, str))
    if not comparable:
        return False
    if op == "<":
        return lhs < rhs
    if op == "<=":
        return lhs <= rhs
    if op == ">":
        return lhs > rhs
    return lhs >= rhs


class _Context:
    def __init__(self, root: Any, table: FunctionTable):
        self.root = root
        self.table = table


def _as_node_set(value: Any) -> NodeSet:
    if isinstance(value, NodeSet):
        return value
    return NodeSet([value])


def _evaluate(expr: tuple, context: _Context, current: Any) -> Any:
    kind = expr[0]
    if kind == "path":
        nodes = [context.root if expr[1] == "$" else current]
        for selector in expr[2]:
            nodes = _apply_selector(nodes, selector, context)
        return NodeSet(nodes)
    if kind == "literal":
        return expr[1]
    if kind == "call":
        args = [_as_node_set(_evaluate(arg, context, current)) for arg in expr[2]]
        return context.table.call(expr[1], args)
    if kind == "not":
        return not _truthy(_evaluate(expr[1], context, current))
    if kind == "and":
        return _truthy(_evaluate(expr[1], context, current)) and _truthy(_evaluate(expr[2], context, current))
    if kind == "or":
        return _truthy(_evaluate(expr[1], context, current)) or _truthy(_evaluate(expr[2], context, current))
    if kind == "cmp":
        return _compare(expr[1], _evaluate(expr[2], context, current), _evaluate(expr[3], context, current))
    raise JsonPathError(ErrorCode.INVALID_JSONPATH, f"Unknown expression kind: {kind}")


def _resolve_function_table(options: Dict[str, Any]) -> FunctionTable:
    if options.get("function_table") is not None:
        return options["function_table"]
    functions = dict(options.get("functions") or {})
    if options.get("custom_function_path"):
        functions.update(load_custom_functions(options["custom_function_path"]))
    strict_extrema = bool(options.get("strict_extrema", False))
    if not functions and not strict_extrema:
        return default_function_table()
    return FunctionTable(functions, strict_extrema)


# ==============================================================================
# Public Query Functions
# ==============================================================================

def json_query(data: Any, path: str, options: Optional[Dict[str, Any]] = None) -> List[Any]:
    """
    Evaluates a JSONPath expression against JSON data.

    Args:
        data (Any): The JSON data to query (as a Python dict/list).
        path (str): The JSONPath expression. Either a path such as
            "$.store.book[?(@.price < 10)].title", or a function call such as
            "avg($.store.book[*].price)".
        options (Optional[Dict[str, Any]]): Query options with the following possible keys:
            - functions (Dict[str, Callable]): Extra functions, keyed by name.
            - custom_function_path (str): Path to a Python file whose public
              callables are added as functions.
            - strict_extrema (bool): Make 'max' and 'min' fail on empty node sets.
            - function_table (FunctionTable): A prebuilt table; overrides the
              keys above.

    Returns:
        List[Any]: The selected values for a path, or a one-element list holding
        the result of a function call or filter expression.

    Raises:
        JsonPathError: If the expression is invalid or a function fails.
    """
    if options is None:
        options = {}

    expr = parse_jsonpath(path)
    context = _Context(data, _resolve_function_table(options))
    logger.debug(f"Evaluating JSONPath: {path}")

    result = _evaluate(expr, context, data)
    if isinstance(result, NodeSet):
        return list(result.nodes)
    return [result]


def json_query_file(file_path: str, path: str, options: Optional[Dict[str, Any]] = None) -> List[Any]:
    """
    Reads a JSON file and evaluates a JSONPath expression against its content.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        json.JSONDecodeError: If the file contains invalid JSON.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"JSON file not found at: {file_path}")

    with open(file_path, 'r') as f:
        data = json.load(f)

    return json_query(data, path, options)


def json_query_url(url: str, path: str, options: Optional[Dict[str, Any]] = None) -> List[Any]:
    """
    Fetches a JSON document over HTTP and evaluates a JSONPath expression against it.

    Args:
        url (str): The document URL.
        path (str): The JSONPath expression.
        options (Optional[Dict[str, Any]]): Query options as for json_query, plus
            - timeout (float): Request timeout in seconds (default 30).

    Raises:
        requests.RequestException: If there's an error fetching the URL.
    """
    if options is None:
        options = {}

    response = requests.get(url, timeout=options.get("timeout", 30))
    response.raise_for_status()  # Raise exception for 4XX/5XX responses
    return json_query(response.json(), path, options)
