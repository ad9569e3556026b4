"""
Remote action gateway.

Provides:
- RemoteActionGateway with retry, backoff and error classification
- Remote backends (MCP over stdio, HTTP)
- Response decoding and recovery transforms
"""

from designscout.gateway.backend import (
    HttpToolBackend,
    McpStdioBackend,
    RemoteBackend,
    create_backend,
)
from designscout.gateway.client import (
    RemoteActionGateway,
    StepFailure,
    WorkflowReport,
)
from designscout.gateway.decoder import (
    DecodedResponse,
    ResponseShape,
    decode_json,
    decode_response,
    decode_text,
    decode_url,
)
from designscout.gateway.errors import (
    BackendError,
    ErrorType,
    GatewayError,
    UrlWaitTimeoutError,
    classify_error,
)
from designscout.gateway.recovery import (
    RecoveryPlan,
    expand_locator,
    fallback_locators,
    plan_recovery,
)

__all__ = [
    # Client
    "RemoteActionGateway",
    "StepFailure",
    "WorkflowReport",
    # Backends
    "HttpToolBackend",
    "McpStdioBackend",
    "RemoteBackend",
    "create_backend",
    # Decoding
    "DecodedResponse",
    "ResponseShape",
    "decode_json",
    "decode_response",
    "decode_text",
    "decode_url",
    # Errors
    "BackendError",
    "ErrorType",
    "GatewayError",
    "UrlWaitTimeoutError",
    "classify_error",
    # Recovery
    "RecoveryPlan",
    "expand_locator",
    "fallback_locators",
    "plan_recovery",
]
