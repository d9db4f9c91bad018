from .codec import (
    BASE64_ALPHABET,
    BASE64URL_ALPHABET,
    NO_PADDING,
    BytesView,
    decode_base64,
    encode_base64,
    encode_base64url,
    is_base64,
)
from .errors import ErrorCode, InvalidBase64Error, JsonPathError
from .functions import (
    FunctionTable,
    NodeSet,
    builtin_functions,
    default_function_table,
    load_custom_functions,
)
from .query import json_query, json_query_file, json_query_url, parse_jsonpath
from .values import as_number, as_string
