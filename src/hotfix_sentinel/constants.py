"""
Default values and shared constants for hotfix-sentinel.
"""

# Queue consumption
DEFAULT_POLL_INTERVAL_SECONDS = 120
DEFAULT_BATCH_SIZE = 1000
DEFAULT_PULL_TIMEOUT_SECONDS = 30
DEFAULT_ACK_DEADLINE_SECONDS = 60

# Workflow
DEFAULT_ACTION_TIMEOUT_SECONDS = 60
DEFAULT_BRANCH_PREFIX = "hotfix/"
DEFAULT_SOURCE_PATH_PREFIX = ""
INCIDENT_KEY_LENGTH = 12

# Transports
DEFAULT_HTTP_TIMEOUT_SECONDS = 30
DEFAULT_SMTP_PORT = 587
GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT_HEADER = "application/vnd.github.v3+json"
JIRA_ISSUE_TYPE = "Story"

# Classification / LLM
VALID_CLASSIFIERS = {"rules", "llm"}
VALID_LLM_PROVIDERS = {"none", "openai", "anthropic"}
DEFAULT_LLM_TIMEOUT_SECONDS = 30
DEFAULT_LLM_MAX_TOKENS = 1024
DEFAULT_FIX_MAX_TOKENS = 8192
CLASSIFICATION_TEMPERATURE = 0.0
FIX_TEMPERATURE = 0.1
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"
MAX_EVIDENCE_CHARS = 12000

# Audit
VALID_AUDIT_BACKENDS = {"memory", "jsonl"}
DEFAULT_AUDIT_FILE = "hotfix-sentinel-audit.jsonl"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
