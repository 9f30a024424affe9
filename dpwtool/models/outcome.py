"""Typed outcomes returned by every remote call.

A call produces exactly one of:

- Success(payload)
- ClientError(status_code, message, reason)   -- PROTOCOL
- ServerError(status_code, message)           -- PROTOCOL
- TransportError(message)                     -- TRANSPORT
- ParseError(message)                         -- PARSE
- BusinessRuleError(message)                  -- BUSINESS_RULE

The first four form ApiOutcome (what the response classifier can produce);
domain parsers and clients widen it with ParseError and BusinessRuleError.
Outcomes are data: nothing here raises.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureKind(StrEnum):
    """Failure taxonomy shared by all failure outcomes."""

    TRANSPORT = "TRANSPORT"
    PROTOCOL = "PROTOCOL"
    PARSE = "PARSE"
    BUSINESS_RULE = "BUSINESS_RULE"


class ClientErrorReason(StrEnum):
    """Why a 4xx/unexpected status was rejected."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    UNEXPECTED = "UNEXPECTED"


@dataclass(frozen=True)
class Success(Generic[T]):
    payload: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure(ABC):
    """Common shape of every failure outcome."""

    message: str

    @property
    def ok(self) -> bool:
        return False

    @property
    @abstractmethod
    def kind(self) -> FailureKind:
        """Taxonomy bucket of this failure."""

    def describe(self) -> str:
        """Operator-facing one-line description."""
        return self.message


@dataclass(frozen=True)
class ClientError(Failure):
    status_code: int = 0
    reason: ClientErrorReason = ClientErrorReason.UNEXPECTED

    @property
    def kind(self) -> FailureKind:
        return FailureKind.PROTOCOL

    def describe(self) -> str:
        if self.reason == ClientErrorReason.BAD_REQUEST:
            return f"Invalid data: {self.message}"
        if self.reason == ClientErrorReason.NOT_FOUND:
            return f"Not found: {self.message}"
        return f"HTTP {self.status_code}: {self.message}"


@dataclass(frozen=True)
class ServerError(Failure):
    status_code: int = 500

    @property
    def kind(self) -> FailureKind:
        return FailureKind.PROTOCOL

    def describe(self) -> str:
        return f"Server error: {self.message}"


@dataclass(frozen=True)
class TransportError(Failure):
    @property
    def kind(self) -> FailureKind:
        return FailureKind.TRANSPORT

    def describe(self) -> str:
        return f"Network error: {self.message}"


@dataclass(frozen=True)
class ParseError(Failure):
    @property
    def kind(self) -> FailureKind:
        return FailureKind.PARSE


@dataclass(frozen=True)
class BusinessRuleError(Failure):
    @property
    def kind(self) -> FailureKind:
        return FailureKind.BUSINESS_RULE


ApiOutcome = Success[T] | ClientError | ServerError | TransportError
Outcome = Success[T] | ClientError | ServerError | TransportError | ParseError | BusinessRuleError
