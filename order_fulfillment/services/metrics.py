"""
Prometheus counters for order outcomes
"""
from prometheus_client import Counter

CHECKOUTS = Counter(
    "order_checkouts_total",
    "Checkout attempts by outcome",
    ["outcome"],
)

TRANSITIONS = Counter(
    "order_transitions_total",
    "Lifecycle transition attempts by transition and outcome",
    ["transition", "outcome"],
)
