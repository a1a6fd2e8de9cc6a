"""
Shared metrics configuration for the rate-limit policy resolver.
"""

from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge


class PolicyMetrics:
    """Prometheus metrics for rule registration and resolution.

    Each instance owns its registry unless one is passed in, so several
    stores (or test cases) can keep independent counters.
    """

    def __init__(self, service_name: str = "ratelimit", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up resolver metrics."""
        self._metrics["rules_added_total"] = Counter(
            "ratelimit_rules_added_total",
            "Total rules accepted into a store",
            ["store"],
            registry=self.registry
        )

        self._metrics["rules_rejected_total"] = Counter(
            "ratelimit_rules_rejected_total",
            "Total rules rejected while building a store",
            ["store", "code"],
            registry=self.registry
        )

        self._metrics["resolutions_total"] = Counter(
            "ratelimit_resolutions_total",
            "Total resolve calls",
            ["store", "outcome", "rule_index"],
            registry=self.registry
        )

        self._metrics["store_rules"] = Gauge(
            "ratelimit_store_rules",
            "Number of rules in a frozen store",
            ["store"],
            registry=self.registry
        )

    def record_rule_added(self, store: str):
        self._metrics["rules_added_total"].labels(store=store).inc()

    def record_rule_rejected(self, store: str, code: str):
        self._metrics["rules_rejected_total"].labels(store=store, code=code).inc()

    def record_resolution(self, store: str, rule_index: Optional[int]):
        """Count a resolve call; rule_index None means nothing matched."""
        if rule_index is None:
            labels = {"store": store, "outcome": "no_match", "rule_index": ""}
        else:
            labels = {"store": store, "outcome": "matched", "rule_index": str(rule_index)}
        self._metrics["resolutions_total"].labels(**labels).inc()

    def record_store_frozen(self, store: str, rule_count: int):
        self._metrics["store_rules"].labels(store=store).set(rule_count)

    def get_sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a single sample value from this collector's registry."""
        return self.registry.get_sample_value(name, labels or {})
