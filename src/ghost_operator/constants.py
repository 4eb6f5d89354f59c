"""
Default values shared across Ghost Operator.
"""

# Remediation
DEFAULT_REDUNDANCY_TARGET = 2
DEFAULT_VALIDATION_DELAY_SECONDS = 10.0

# History lookups
DEFAULT_SIMILAR_INCIDENT_LIMIT = 5
DEFAULT_MEMORY_SEARCH_LIMIT = 5

# Incident construction
TITLE_MIN_LENGTH = 10
TITLE_MAX_LENGTH = 200
SUMMARY_MAX_LENGTH = 1000

# Orchestration
DEFAULT_ACTIVITY_LOG_SIZE = 500
DEFAULT_DATABASE_PATH = "ghost_operator.db"

# Collaborator endpoints
DEFAULT_RENDER_BASE_URL = "https://api.render.com/v1"
DEFAULT_SENSO_BASE_URL = "https://api.senso.ai/v1"
DEFAULT_HTTP_TIMEOUT_SECONDS = 15

# Source tag for signals produced by a direct health check of the compute target
HEALTH_CHECK_SOURCE = "render_health"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
