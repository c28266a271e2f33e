from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import Enum

import httpx

from ..schemas.contracts import OcrStatus


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    AUTH_CONFIG = "auth_config"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK_UNREACHABLE = "network_unreachable"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ExtractionResult:
    text: str
    status: OcrStatus


class ProviderFailure(Exception):
    """A single provider attempt failed; the chain moves on to the next tier."""

    def __init__(
        self,
        kind: FailureKind,
        message: str = "",
        *,
        salvage: ExtractionResult | None = None,
    ) -> None:
        super().__init__(message or kind.value)
        self.kind: FailureKind = kind
        self.message: str = str(message or kind.value)
        self.salvage: ExtractionResult | None = salvage

    def with_salvage(self, salvage: ExtractionResult) -> "ProviderFailure":
        return ProviderFailure(self.kind, self.message, salvage=salvage)


def _status_kind(status_code: int) -> FailureKind:
    if status_code in {401, 403}:
        return FailureKind.AUTH_CONFIG
    if status_code == 429:
        return FailureKind.RATE_LIMITED
    return FailureKind.UNKNOWN


def classify_exception(exc: BaseException) -> ProviderFailure:
    if isinstance(exc, ProviderFailure):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ProviderFailure(FailureKind.TIMEOUT, str(exc) or "provider call timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = int(exc.response.status_code)
        return ProviderFailure(_status_kind(status_code), f"http status {status_code}")
    if isinstance(exc, httpx.TransportError):
        return ProviderFailure(FailureKind.NETWORK_UNREACHABLE, str(exc) or type(exc).__name__)
    if isinstance(exc, (json.JSONDecodeError, UnicodeDecodeError)):
        return ProviderFailure(FailureKind.MALFORMED_RESPONSE, str(exc))
    return ProviderFailure(FailureKind.UNKNOWN, str(exc) or type(exc).__name__)


def raise_for_status(res: httpx.Response) -> None:
    """Like ``Response.raise_for_status`` but raises a classified failure."""
    status_code = int(res.status_code)
    if status_code < 400:
        return
    body = str(getattr(res, "text", "") or "")[:200]
    raise ProviderFailure(_status_kind(status_code), f"http status {status_code} body={body}")
