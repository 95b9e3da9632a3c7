import json
import logging

from src.observability import log_support_event, metric_key, metrics_snapshot


def test_metric_key_orders_labels() -> None:
    assert metric_key("support.sessions.started") == "support.sessions.started"
    assert metric_key("x", b="2", a="1") == "x|a=1,b=2"


def test_support_event_counts_under_support_prefix(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="change_platform"):
        log_support_event(
            "impersonation_bound",
            metric="impersonation.bound",
            labels={"mode": "read"},
            session_id="ss-1",
            organization_id=None,
        )

    assert metrics_snapshot() == {"support.impersonation.bound|mode=read": 1}
    record = json.loads(caplog.records[-1].getMessage())
    assert record == {"component": "support", "event": "impersonation_bound", "session_id": "ss-1"}


def test_support_event_redacts_handoff_secrets(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="change_platform"):
        log_support_event(
            "impersonation_bind_rejected",
            level=logging.WARNING,
            request_id="req-1",
            token="eyJzZXNzaW9uSWQiOiJzcy0xIn0.c2ln",
            reason="invalid_token",
        )

    assert metrics_snapshot() == {}
    record = json.loads(caplog.records[-1].getMessage())
    assert record["token"] == "[redacted]"
    assert record["request_id"] == "req-1"
    assert "eyJzZXNzaW9uSWQ" not in caplog.text
    assert caplog.records[-1].levelno == logging.WARNING
