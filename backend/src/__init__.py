"""
DesignScout.

Drives a remote browser automation service to search an authenticated design
reference library, disambiguate search suggestions, and capture the detail
pages of the top results.
"""

__version__ = "1.0.0"

from designscout.config import (
    BackendConfig,
    BrowserConfig,
    CaptureConfig,
    ConfigurationError,
    Credentials,
    RetryPolicy,
    ScoutConfig,
    ScoutSettings,
    SiteProfile,
    TransportKind,
    load_scout_config,
)
from designscout.gateway import (
    BackendError,
    GatewayError,
    HttpToolBackend,
    McpStdioBackend,
    RemoteActionGateway,
    RemoteBackend,
    UrlWaitTimeoutError,
    WorkflowReport,
    classify_error,
    create_backend,
)
from designscout.models import (
    AuthenticationState,
    CandidateSuggestion,
    CapturedResult,
    ErrorType,
    ExecutionPhase,
    PhaseStatus,
    Platform,
    RouteKind,
    SuggestionKind,
    WorkflowAction,
    WorkflowStep,
)
from designscout.orchestrator import (
    ParallelRunResult,
    ParallelSearchRunner,
    PhaseFailedError,
    PhaseLayout,
    PhaseOrchestrator,
    PhaseSpec,
    RunReport,
    ScoutPipeline,
    SearchRequest,
    decide_route,
    extract_keywords,
)
from designscout.service import ScoutService
from designscout.session import (
    AuthenticationError,
    LoginFailedError,
    SessionCaptureManager,
)
from designscout.suggestions import (
    OutcomeKind,
    SelectionOutcome,
    SuggestionClassifier,
    SuggestionDisambiguationEngine,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackendConfig",
    "BrowserConfig",
    "CaptureConfig",
    "ConfigurationError",
    "Credentials",
    "RetryPolicy",
    "ScoutConfig",
    "ScoutSettings",
    "SiteProfile",
    "TransportKind",
    "load_scout_config",
    # Models
    "AuthenticationState",
    "CandidateSuggestion",
    "CapturedResult",
    "ErrorType",
    "ExecutionPhase",
    "PhaseStatus",
    "Platform",
    "RouteKind",
    "SuggestionKind",
    "WorkflowAction",
    "WorkflowStep",
    # Gateway
    "BackendError",
    "GatewayError",
    "HttpToolBackend",
    "McpStdioBackend",
    "RemoteActionGateway",
    "RemoteBackend",
    "UrlWaitTimeoutError",
    "WorkflowReport",
    "classify_error",
    "create_backend",
    # Suggestions
    "OutcomeKind",
    "SelectionOutcome",
    "SuggestionClassifier",
    "SuggestionDisambiguationEngine",
    # Session
    "AuthenticationError",
    "LoginFailedError",
    "SessionCaptureManager",
    # Orchestration
    "ParallelRunResult",
    "ParallelSearchRunner",
    "PhaseFailedError",
    "PhaseLayout",
    "PhaseOrchestrator",
    "PhaseSpec",
    "RunReport",
    "ScoutPipeline",
    "SearchRequest",
    "ScoutService",
    "decide_route",
    "extract_keywords",
]
