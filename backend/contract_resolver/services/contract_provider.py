from __future__ import annotations

from collections.abc import Awaitable, Callable

from ..schemas.contracts import ContractSubmission, Report

# (prompt) -> reply text
TextGenerator = Callable[[str], Awaitable[str]]
# (image base64, mime type, prompt) -> reply text
ImageReader = Callable[[str, str, str], Awaitable[str]]


class ContractProvider:
    """One tier of a provider chain.

    ``analyze`` returns a finished :class:`Report` or raises ``ProviderFailure``
    (any other exception is classified by the resolver).
    """

    name: str = "provider"
    timeout_seconds: float = 60.0

    async def analyze(self, submission: ContractSubmission) -> Report:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, timeout_seconds={self.timeout_seconds!r})"
