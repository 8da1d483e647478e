"""LLM transport and response parsing."""
from unitforge.llm.parsing import (
    clean_json_string,
    parse_json_list,
    parse_json_object,
    parse_json_response,
)
from unitforge.llm.transport import (
    CompletionOptions,
    GeminiTransport,
    LLMTransport,
    ProxyTransport,
    RetryingTransport,
    create_transport,
)

__all__ = [
    "CompletionOptions",
    "GeminiTransport",
    "LLMTransport",
    "ProxyTransport",
    "RetryingTransport",
    "clean_json_string",
    "create_transport",
    "parse_json_list",
    "parse_json_object",
    "parse_json_response",
]
