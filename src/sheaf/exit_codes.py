"""Exit codes for sheaf CLI commands.

All commands use consistent exit codes so shell startup scripts can react to them.
"""

# Success
SUCCESS = 0

# Errors
GENERAL_ERROR = 1
INVALID_ARGS = 2
CONFIG_NOT_FOUND = 3
CONFIG_INVALID = 4
RESOLVE_FAILED = 5
LOCK_BUSY = 6
GIT_ERROR = 7
