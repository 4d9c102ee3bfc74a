from prometheus_client import CollectorRegistry

from tokenvest.core.vesting_events import VestingEventLog, VestingEventType
from tokenvest.core.vesting_metrics import VestingMetrics


def test_emit_assigns_increasing_sequence():
    log = VestingEventLog()

    first = log.emit(VestingEventType.ORGANIZATION_REGISTERED, "0xorg", name="Acme")
    second = log.emit(VestingEventType.STAKEHOLDER_ADDED, "0xorg", stakeholder="0xalice")

    assert (first.sequence, second.sequence) == (1, 2)
    assert second.to_dict()["event"] == "StakeholderAdded"
    assert second.to_dict()["data"] == {"stakeholder": "0xalice"}
    assert len(log) == 2


def test_events_filter_and_limit():
    log = VestingEventLog()
    log.emit(VestingEventType.ORGANIZATION_REGISTERED, "0xorg")
    log.emit(VestingEventType.ORGANIZATION_REGISTERED, "0xother")
    log.emit(VestingEventType.TOKENS_CLAIMED, "0xorg", amount=5)
    log.emit(VestingEventType.TOKENS_CLAIMED, "0xorg", amount=7)

    assert [e.sequence for e in log.events(org_id="0xorg")] == [1, 3, 4]
    assert [e.sequence for e in log.events(event_type=VestingEventType.TOKENS_CLAIMED, limit=1)] == [4]
    assert log.events(limit=0) == []


def test_log_is_bounded():
    log = VestingEventLog(max_events=3)
    for _ in range(5):
        log.emit(VestingEventType.ADDRESS_WHITELISTED, "0xorg")

    assert [e.sequence for e in log.events()] == [3, 4, 5]


def test_subscribers_filter_and_unsubscribe():
    log = VestingEventLog()
    everything, claims = [], []
    log.subscribe(everything.append)
    unsubscribe = log.subscribe(claims.append, [VestingEventType.TOKENS_CLAIMED])

    log.emit(VestingEventType.ADDRESS_WHITELISTED, "0xorg")
    log.emit(VestingEventType.TOKENS_CLAIMED, "0xorg", amount=1)
    unsubscribe()
    log.emit(VestingEventType.TOKENS_CLAIMED, "0xorg", amount=2)

    assert len(everything) == 3
    assert [e.data["amount"] for e in claims] == [1]


def test_failing_subscriber_does_not_block_others():
    log = VestingEventLog()
    received = []

    def broken(_event):
        raise RuntimeError("indexer down")

    log.subscribe(broken)
    log.subscribe(received.append)

    event = log.emit(VestingEventType.TOKENS_CLAIMED, "0xorg", amount=3)

    assert received == [event]
    assert len(log) == 1


def test_metrics_track_custody_flow():
    registry = CollectorRegistry()
    metrics = VestingMetrics(registry)

    metrics.record_registration()
    metrics.record_deposit("ACME", 1000)
    metrics.record_claim("ACME", 400)
    metrics.record_claim("ACME", 0)
    metrics.record_failure("claim_tokens", "nothing_to_claim")

    assert registry.get_sample_value("tokenvest_organizations_registered_total") == 1
    assert registry.get_sample_value("tokenvest_tokens_deposited_total", {"token": "ACME"}) == 1000
    assert registry.get_sample_value("tokenvest_tokens_claimed_total", {"token": "ACME"}) == 400
    assert registry.get_sample_value("tokenvest_claims_total") == 1
    assert registry.get_sample_value("tokenvest_tokens_in_custody", {"token": "ACME"}) == 600
    assert (
        registry.get_sample_value(
            "tokenvest_operation_failures_total",
            {"operation": "claim_tokens", "code": "nothing_to_claim"},
        )
        == 1
    )


def test_metrics_render_exposition_format():
    metrics = VestingMetrics()
    metrics.record_deposit("ACME", 5)

    text = metrics.render().decode()

    assert 'tokenvest_tokens_deposited_total{token="ACME"} 5.0' in text
