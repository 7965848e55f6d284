"""Shared constants for hookit."""

JOB_NAME_PREFIX = "workflow_"

DEFAULT_SCHEDULE_HOUR = 9
DEFAULT_SCHEDULE_MINUTE = 0

DEFAULT_LEDGER_PAGE_SIZE = 50
DEFAULT_RECENT_WINDOW_HOURS = 24

DEFAULT_STEP_TIMEOUT = 30.0
DEFAULT_STORAGE_TIMEOUT = 10.0
DEFAULT_HTTP_TIMEOUT = 10.0

SCHEDULED_SUCCESS_MESSAGE = "Scheduled execution completed"
WEBHOOK_SUCCESS_MESSAGE = "Webhook execution completed"
