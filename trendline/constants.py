"""Shared constants for trendline."""

WORKFLOW_TTL_SECONDS = 30 * 60
EVENT_TTL_SECONDS = 60 * 60

MAX_REQUEST_AGE_SECONDS = 300
SIGNATURE_VERSION = "v0"

SLACK_MESSAGE_LIMIT = 3900
PARAGRAPH_SEPARATOR = "\n\n"

WORKFLOW_KEY_PREFIX = "trendline:workflow:"
EVENT_KEY_PREFIX = "trendline:event:"
CHAT_KEY_PREFIX = "trendline:chat:"

DEFAULT_STAGE_MODEL = "openai:gpt-4o-mini"
DEFAULT_STAGE_TIMEOUT_SECONDS = 600.0
