from __future__ import annotations

from prometheus_client import Counter, Histogram

# Probe boundary
PROBE_REQUESTS_TOTAL = Counter(
    "inferrer_probe_requests_total",
    "Underlying file provider reads by outcome",
    ["outcome"],
)

# Per-call memoization
PROBE_CACHE_TOTAL = Counter(
    "inferrer_probe_cache_total",
    "Memoized probe lookups (hit, miss, prefetch)",
    ["result"],
)

# Rule engine
RULE_FAILURES_TOTAL = Counter(
    "inferrer_rule_failures_total",
    "Detector rules that raised during inference",
    ["rule"],
)
INFERENCE_DURATION = Histogram(
    "inferrer_inference_duration_seconds",
    "End-to-end duration of one configuration guess",
    ["outcome"],
    buckets=(0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 2.5, 5.0, 10.0),
)
