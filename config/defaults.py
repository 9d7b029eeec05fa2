"""Default configuration values."""

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TURNS = 100
DEFAULT_PERMISSION_MODE = "bypassPermissions"
DEFAULT_THINKING_LEVEL = "default_on"

# Tool names
READ_TOOL_NAME = "Read"
COALESCED_READ_TOOL_NAME = "ReadCoalesced"
DEFAULT_ALLOWED_TOOLS = [READ_TOOL_NAME]

# Thinking budget used when thinking_level is "default_on"
DEFAULT_THINKING_BUDGET_TOKENS = 10000
DEFAULT_MAX_TOKENS = 64000

# Session listing
SUMMARY_MAX_LENGTH = 50

# Config file locations
CONFIG_DIR_NAME = ".worldline"
CONFIG_FILE_NAME = "worldline"

# Storage
DEFAULT_TRANSCRIPTS_DIR = "~/.worldline/transcripts"
DEFAULT_BRANCHES_DIR = "~/.worldline/branches"

# Server
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000

DEFAULT_SYSTEM_PROMPT = """
# Worldline Assistant

You are a helpful assistant working inside a project directory. Use the Read
tool to inspect files before answering questions about them, and quote the
relevant lines when you do.

Keep answers concise. When a request is ambiguous, state the assumption you
made and continue.
""".strip()

REPORT_MODE_INSTRUCTIONS = """

## Report Mode (ENABLED)

Every response MUST end with a structured report:

- A short executive summary with the key findings
- The files or data you relied on
- Conclusions and recommended next steps
"""
