"""
Type definitions for linear_fetch
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

import httpx


@dataclass(frozen=True)
class Operation:
    """One logical GraphQL request: query text plus named variables."""

    query: str
    variables: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if self.variables is not None:
            object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON request payload ({"query", "variables"?})."""
        payload: Dict[str, Any] = {"query": self.query}
        if self.variables is not None:
            payload["variables"] = dict(self.variables)
        return payload

    def encode(self) -> bytes:
        """Serialize the payload once; the bytes are replayed on every attempt."""
        return json.dumps(self.to_payload()).encode("utf-8")


@dataclass
class RawResponse:
    """Fully-read HTTP response"""

    status_code: int
    headers: httpx.Headers
    content: bytes
    elapsed_seconds: float = 0.0

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class ResponseEnvelope:
    """Decoded GraphQL envelope. Both fields may be populated at once."""

    data: Any = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


class AttemptOutcome(str, Enum):
    """Classification of one physical attempt"""
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass
class Attempt:
    """One physical send of an Operation"""

    number: int
    """0-based sequence number within the operation"""

    token: str = field(default="", repr=False)
    """Credential used for this attempt"""

    outcome: Optional[AttemptOutcome] = None

    status_code: Optional[int] = None
    """HTTP status, None for transport failures"""

    error: Optional[BaseException] = None

    wait_hint_seconds: Optional[float] = None
    """Server-supplied Retry-After, when present"""


EventType = Literal[
    "attempt:start",
    "attempt:success",
    "attempt:fail",
    "retry:wait",
    "retry:abort",
    "auth:refresh",
]


@dataclass
class RetryEvent:
    """Event emitted by the retry executor"""

    type: EventType
    """Event type"""

    attempt: int
    """Current attempt number"""

    data: Dict[str, Any] = field(default_factory=dict)
    """Event-specific data"""


RetryEventListener = Callable[[RetryEvent], None]
