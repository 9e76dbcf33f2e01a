"""Prometheus counters for the shortener core."""

from prometheus_client import Counter

__all__ = [
    "CODES_GENERATED_TOTAL",
    "CODE_COLLISIONS_TOTAL",
    "DEDUP_HITS_TOTAL",
    "PERSISTENCE_FAILURES_TOTAL",
    "REDIRECTS_TOTAL",
]

CODES_GENERATED_TOTAL = Counter(
    "url_shortener_codes_generated_total",
    "Short codes allocated for previously unseen URLs",
)
CODE_COLLISIONS_TOTAL = Counter(
    "url_shortener_code_collisions_total",
    "Candidate codes discarded because they were already taken",
)
DEDUP_HITS_TOTAL = Counter(
    "url_shortener_dedup_hits_total",
    "add_url calls answered from the reverse index",
)
PERSISTENCE_FAILURES_TOTAL = Counter(
    "url_shortener_persistence_failures_total",
    "Persistence operations that fell back to their default value",
    ["operation"],
)
REDIRECTS_TOTAL = Counter(
    "url_shortener_redirects_total",
    "Visits recorded through record_visit",
)
