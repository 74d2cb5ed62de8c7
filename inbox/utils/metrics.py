"""Prometheus metrics for the inbox refresh and write paths."""

from prometheus_client import Counter

INBOX_REFRESH_TOTAL = Counter(
    "inbox_refresh_total",
    "Inbox refresh cycles by outcome",
    ["status"],
)

INBOX_SOURCE_FAILURES_TOTAL = Counter(
    "inbox_source_failures_total",
    "Backing store fetch failures during a refresh cycle",
    ["source"],
)

INBOX_OWNERSHIP_MISMATCH_TOTAL = Counter(
    "inbox_ownership_mismatch_total",
    "Chat rooms dropped because the receiver is not the current agent",
)

INBOX_MESSAGE_SEND_TOTAL = Counter(
    "inbox_message_send_total",
    "Outgoing chat messages by outcome",
    ["status"],
)

INBOX_STATUS_WRITE_TOTAL = Counter(
    "inbox_status_write_total",
    "Conversation status writes by store and outcome",
    ["store", "status"],
)
