"""
Constants
Centralised storage for result actions, user-facing messages and the
progress bands of feature jobs.
"""
ACTION_REDIRECT = "REDIRECT"
ACTION_ORCHESTRATED = "ORCHESTRATED_IMPLEMENTATION"

REDIRECT_MESSAGE = (
    "This request requires fixing existing files, not creating new ones. "
    "Please use the regular fix feature."
)

# Progress bands for feature jobs (percent at which each phase starts)
PROGRESS_PLANNING = 5
PROGRESS_CREATION = 10
PROGRESS_MODIFICATION = 30
PROGRESS_DEPENDENCIES = 50
PROGRESS_CONFIGURATION = 70
PROGRESS_COMPLETE = 100

ORIGINAL_CONTENT_UNAVAILABLE = "// Original file content not available"
