"""Prometheus counters shared by the loops and the clients."""

from __future__ import annotations

from prometheus_client import Counter

metrics = {
    "cycles_total": Counter(
        "bridge_cycles_total",
        "Count of loop cycles by loop and outcome",
        ["loop", "ok"],
    ),
    "updates_total": Counter(
        "bridge_updates_total",
        "Count of Telegram updates consumed",
    ),
    "mappings_replaced_total": Counter(
        "bridge_mappings_replaced_total",
        "Count of identity mappings written from bind commands",
    ),
    "assignments_total": Counter(
        "bridge_assignments_total",
        "Count of merge request assignment attempts",
        ["ok"],
    ),
    "notifications_total": Counter(
        "bridge_notifications_total",
        "Count of Telegram notifications sent",
        ["ok"],
    ),
}


def inc(name: str, amount: float = 1, **labels: str) -> None:
    counter = metrics[name]
    if labels:
        counter.labels(**labels).inc(amount)
    else:
        counter.inc(amount)
