"""
Centralized constants for the subtitle translation engine.
All magic numbers of the batch pipeline live here.
"""

# ===========================================
# BATCH PLANNING
# ===========================================
BATCH_SIZE_PLAIN = 150                # entries per batch, numbered-list mode
BATCH_SIZE_TIMESTAMP = 150            # entries per batch, timestamp mode
BATCH_SIZE_TAGGED = 250               # entries per batch, tagged mode
MAX_TOKENS_PER_BATCH = 25000          # token ceiling before a batch is split
TOKEN_ESTIMATE_CHARS_PER_TOKEN = 4    # heuristic estimator
TOKEN_ESTIMATE_SAFETY_FACTOR = 1.1

# ===========================================
# CONCURRENCY
# ===========================================
DEFAULT_CONCURRENCY = 3
MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 5

# ===========================================
# RETRIES
# ===========================================
TRANSLATION_MAX_RETRIES = 3           # transient backend errors per request
TRANSLATION_RETRY_DELAY = 1.0         # base delay (seconds)
RETRY_MAX_DELAY = 10                  # cap for the exponential backoff
RATE_LIMIT_MAX_DELAY = 30             # cap when the backend rate limits us
DEFAULT_MISMATCH_RETRIES = 1          # full re-requests on heavy mismatch
MAX_MISMATCH_RETRIES = 3
MISMATCH_RETRY_DELAY = 0.5            # linear backoff step between full retries
TRANSLATION_TIMEOUT = 120.0           # per backend call (seconds)

# ===========================================
# MISMATCH RECOVERY
# ===========================================
PARTIAL_MISSING_RATIO = 0.3           # <= ceil(0.3 * n) missing -> targeted retry
DEGRADED_ENTRY_MARKER = "[UNTRANSLATED] "

# ===========================================
# STREAMING
# ===========================================
STREAM_EMIT_INTERVAL = 30             # emit a snapshot every N new entries

# ===========================================
# PROMPT LAYOUT
# ===========================================
CONTEXT_SECTION_HEADER = "=== CONTEXT (DO NOT TRANSLATE) ==="
ENTRIES_SECTION_HEADER = "=== ENTRIES TO TRANSLATE ==="
DEFAULT_CONTEXT_SIZE = 3

# ===========================================
# CACHE
# ===========================================
ENTRY_CACHE_SIZE = 100000             # max cached entries
CACHE_EVICTION_RATIO = 0.1            # drop the oldest 10% when full

# ===========================================
# NATIVE BACKENDS
# ===========================================
GOOGLE_TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"
GOOGLE_TRANSLATE_DELIMITER = " ||| "

# ===========================================
# LOGGING
# ===========================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/translator.log'
LOG_MAX_SIZE_MB = 10
LOG_BACKUP_COUNT = 5
