"""
Vesting service instrumentation.

Prometheus metrics tracking registrations, custody deposits, claims and
rejected operations. Each ``VestingMetrics`` owns its registry so several
services (or tests) can coexist in one process.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class VestingMetrics:
    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        self.organizations_registered = Counter(
            "tokenvest_organizations_registered_total",
            "Total number of registered organizations",
            registry=self.registry,
        )
        self.stakeholders_added = Counter(
            "tokenvest_stakeholders_added_total",
            "Total number of vesting schedules created",
            ["token"],
            registry=self.registry,
        )
        self.tokens_deposited = Counter(
            "tokenvest_tokens_deposited_total",
            "Total tokens moved into custody for vesting schedules",
            ["token"],
            registry=self.registry,
        )
        self.tokens_claimed = Counter(
            "tokenvest_tokens_claimed_total",
            "Total tokens paid out to stakeholders",
            ["token"],
            registry=self.registry,
        )
        self.claims = Counter(
            "tokenvest_claims_total",
            "Total number of successful claims",
            registry=self.registry,
        )
        self.failures = Counter(
            "tokenvest_operation_failures_total",
            "Rejected operations by operation and error code",
            ["operation", "code"],
            registry=self.registry,
        )
        self.tokens_in_custody = Gauge(
            "tokenvest_tokens_in_custody",
            "Tokens deposited and not yet claimed",
            ["token"],
            registry=self.registry,
        )

    def record_registration(self) -> None:
        self.organizations_registered.inc()

    def record_deposit(self, token: str, amount: int) -> None:
        if amount <= 0:
            return
        self.stakeholders_added.labels(token=token).inc()
        self.tokens_deposited.labels(token=token).inc(amount)
        self.tokens_in_custody.labels(token=token).inc(amount)

    def record_claim(self, token: str, amount: int) -> None:
        if amount <= 0:
            return
        self.claims.inc()
        self.tokens_claimed.labels(token=token).inc(amount)
        self.tokens_in_custody.labels(token=token).dec(amount)

    def set_custody(self, token: str, amount: int) -> None:
        """Set the custody gauge outright, e.g. from restored schedules."""
        self.tokens_in_custody.labels(token=token).set(amount)

    def record_failure(self, operation: str, code: str) -> None:
        self.failures.labels(operation=operation, code=code).inc()

    def render(self) -> bytes:
        """Return the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)
