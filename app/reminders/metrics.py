from prometheus_client import Counter


scheduler_scans_total = Counter(
    "reminder_scheduler_scans_total",
    "Total scheduler scan cycles",
)

scheduler_matched_total = Counter(
    "reminder_scheduler_matched_total",
    "Total schedule entries matched as due",
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total successful push dispatches",
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total failed push dispatches",
    ["reason"],
)

token_sweeps_total = Counter(
    "reminder_token_sweeps_total",
    "Total token sweep cycles",
)

tokens_cleared_total = Counter(
    "reminder_tokens_cleared_total",
    "Total delivery tokens cleared after a permanent failure",
    ["source"],
)
