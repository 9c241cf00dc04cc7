"""Prometheus counters describing ledger activity."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

VALUE_FLOWS = ("deposit", "withdraw", "escrow_hold", "escrow_release", "refund", "fee")


class MarketplaceMetrics:
    """Counters kept in a private registry so several facades can coexist."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.operations = Counter(
            "marketplace_operations_total",
            "Count of marketplace operations by outcome",
            labelnames=("operation", "outcome"),
            registry=self.registry,
        )
        self.rejections = Counter(
            "marketplace_rejections_total",
            "Count of rejected marketplace operations by error kind",
            labelnames=("operation", "kind"),
            registry=self.registry,
        )
        self.value_moved = Counter(
            "marketplace_value_moved_total",
            "Value moved through the balance ledger by flow",
            labelnames=("flow",),
            registry=self.registry,
        )

    def record_success(self, operation: str) -> None:
        self.operations.labels(operation, "ok").inc()

    def record_rejection(self, operation: str, kind: str) -> None:
        self.operations.labels(operation, "rejected").inc()
        self.rejections.labels(operation, kind).inc()

    def record_flow(self, flow: str, amount: int) -> None:
        if flow not in VALUE_FLOWS:
            raise ValueError(f"unknown value flow: {flow}")
        if amount > 0:
            self.value_moved.labels(flow).inc(amount)

    def sample(self, name: str, labels: dict[str, str]) -> float:
        value = self.registry.get_sample_value(name, labels)
        return float(value or 0.0)

    def render(self) -> bytes:
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST


__all__ = ["MarketplaceMetrics", "VALUE_FLOWS"]
