import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ProviderRecentFailure:
    ts: float
    modality: str
    tier: str
    kind: str
    message: str | None

    def to_dict(self) -> dict[str, object]:
        dt = datetime.fromtimestamp(float(self.ts))
        return {
            "ts": float(self.ts),
            "at": dt.isoformat(),
            "modality": str(self.modality),
            "tier": str(self.tier),
            "kind": str(self.kind),
            "message": str(self.message) if self.message is not None else None,
        }


class ResolutionMetrics:
    def __init__(self) -> None:
        self.started_at: float = float(time.time())
        self.failures_total: int = 0
        self.fallbacks_total: int = 0
        self._requests_by_modality: dict[str, int] = {}
        self._attempts_by_tier: dict[str, int] = {}
        self._successes_by_tier: dict[str, int] = {}
        self._failures_by_tier: dict[str, int] = {}
        self._failure_kind_counts: dict[str, int] = {}
        self._recent_failures: deque[ProviderRecentFailure] = deque(maxlen=50)
        self._lock: threading.Lock = threading.Lock()

    def record_request(self, modality: str) -> None:
        m = str(modality)
        with self._lock:
            self._requests_by_modality[m] = int(self._requests_by_modality.get(m, 0)) + 1

    def record_attempt(self, tier: str) -> None:
        t = str(tier)
        with self._lock:
            self._attempts_by_tier[t] = int(self._attempts_by_tier.get(t, 0)) + 1

    def record_success(self, tier: str) -> None:
        t = str(tier)
        with self._lock:
            self._successes_by_tier[t] = int(self._successes_by_tier.get(t, 0)) + 1

    def record_failure(
        self,
        *,
        modality: str,
        tier: str,
        kind: str,
        message: str | None = None,
    ) -> None:
        with self._lock:
            self.failures_total += 1
            t = str(tier)
            k = str(kind)
            self._failures_by_tier[t] = int(self._failures_by_tier.get(t, 0)) + 1
            self._failure_kind_counts[k] = int(self._failure_kind_counts.get(k, 0)) + 1
            self._recent_failures.append(
                ProviderRecentFailure(
                    ts=float(time.time()),
                    modality=str(modality),
                    tier=t,
                    kind=k,
                    message=(str(message)[:500] if message is not None else None),
                )
            )

    def record_fallback(self) -> None:
        with self._lock:
            self.fallbacks_total += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            top_failure_kinds = sorted(
                (
                    {"kind": k, "count": int(v)}
                    for k, v in self._failure_kind_counts.items()
                    if str(k).strip()
                ),
                key=lambda row: int(row.get("count", 0)),
                reverse=True,
            )
            tiers = sorted(
                set(self._attempts_by_tier) | set(self._successes_by_tier) | set(self._failures_by_tier)
            )
            return {
                "started_at": float(self.started_at),
                "started_at_iso": datetime.fromtimestamp(float(self.started_at)).isoformat(),
                "requests_by_modality": dict(self._requests_by_modality),
                "failures_total": int(self.failures_total),
                "fallbacks_total": int(self.fallbacks_total),
                "tiers": [
                    {
                        "tier": t,
                        "attempts": int(self._attempts_by_tier.get(t, 0)),
                        "successes": int(self._successes_by_tier.get(t, 0)),
                        "failures": int(self._failures_by_tier.get(t, 0)),
                    }
                    for t in tiers
                ],
                "recent_failures": [f.to_dict() for f in list(self._recent_failures)],
                "top_failure_kinds": list(top_failure_kinds)[:10],
            }


ai_metrics = ResolutionMetrics()
