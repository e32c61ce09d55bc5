"""Centralized constants for phrasal.

Scheduling parameters and defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 Scheduling ----------
MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
DEFAULT_INTERVAL_DAYS = 1
FAILURE_EASE_PENALTY = 0.2
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
PASSING_GRADE = 3
MIN_GRADE = 1
MAX_GRADE = 4
MAX_INTERVAL_DAYS = 36500  # 100 years

# ---------- Mastery ----------
MASTERED_EASE_FACTOR = 2.5  # strictly greater than this counts as mastered

# ---------- Sessions ----------
DEFAULT_MAX_ITEMS = 20
DEFAULT_DRILL_COUNT = 5
SECONDS_PER_ITEM_ESTIMATE = 30
ITEM_ID_PREFIX = "item_"

# ---------- Content Generation / HTTP ----------
REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_SECONDS = 0.5
NARRATIVE_WORD_COUNT = 120
LLM_TEMPERATURE = 0.7
LLM_MAX_TOKENS = 1000
