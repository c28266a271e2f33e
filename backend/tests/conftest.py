"""Pytest配置文件"""
import asyncio
import inspect
import sys
from collections.abc import AsyncGenerator, Sequence
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from contract_resolver.main import app
from contract_resolver.schemas.contracts import ContractSubmission, Provenance, Report
from contract_resolver.services.ai_metrics import ResolutionMetrics
from contract_resolver.services.contract_provider import ContractProvider
from contract_resolver.services.contract_resolution_service import ContractResolver, get_contract_resolver
from contract_resolver.services.heuristic_classifier import HeuristicClassifier


RENTAL_TEXT = (
    "This lease is made between the landlord and the tenant. "
    "The tenant shall pay rent on the first day of each month."
)


def make_report(tier: str = "stub", **overrides: Any) -> Report:
    data: dict[str, Any] = {
        "summary": "A short services contract.",
        "risks": ["Payment terms are vague"],
        "clarifications": ["Who owns the deliverables?"],
        "best_practices": ["Add a termination clause"],
        "final_advice": "Negotiate the payment schedule before signing.",
        "document_type": "service agreement",
        "provenance": Provenance(tier=tier, degraded=False),
    }
    data.update(overrides)
    return Report(**data)


class StubProvider(ContractProvider):
    """Scripted provider: returns ``report`` or raises ``error``; counts calls."""

    def __init__(
        self,
        name: str,
        *,
        report: Report | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
        timeout_seconds: float = 1.0,
    ) -> None:
        self.name = name
        self.report = report
        self.error = error
        self.delay = delay
        self.timeout_seconds = timeout_seconds
        self.calls: list[ContractSubmission] = []

    async def analyze(self, submission: ContractSubmission) -> Report:
        self.calls.append(submission)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        assert self.report is not None
        return self.report


@pytest.fixture
def metrics() -> ResolutionMetrics:
    return ResolutionMetrics()


@pytest.fixture
def make_resolver(metrics: ResolutionMetrics):
    def _make(
        text_chain: Sequence[ContractProvider] = (),
        image_chain: Sequence[ContractProvider] = (),
    ) -> ContractResolver:
        return ContractResolver(text_chain, image_chain, classifier=HeuristicClassifier(), metrics=metrics)

    return _make


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """创建测试客户端（默认无远程供应商，所有请求落到本地分类器）"""
    offline = ContractResolver([], [], classifier=HeuristicClassifier(), metrics=ResolutionMetrics())
    app.dependency_overrides[get_contract_resolver] = lambda: offline

    transport_kwargs: dict[str, Any] = {"app": app}
    if "lifespan" in inspect.signature(ASGITransport.__init__).parameters:
        transport_kwargs["lifespan"] = "off"
    transport = ASGITransport(**transport_kwargs)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
