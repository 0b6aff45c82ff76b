"""Shared constants across the application."""

# Brands whose retail price equals the wholesale price
PASSTHROUGH_BRANDS = ["Mediolano"]

# Catalog store limits
CATALOG_BATCH_LIMIT = 100  # Max items per batch call
CATALOG_PAGE_SIZE = 100  # Max per_page for list endpoints
CATALOG_API_PATH = "/wp-json/wc/v3"

# Variation attribute names used by the JS and MADA feeds
COLOR_ATTRIBUTE = "Color"
SIZE_ATTRIBUTE = "Size"

# Queue defaults
DEFAULT_JOB_PRIORITY = 5
DEFAULT_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY_SECONDS = 60
TICK_RESCHEDULE_SECONDS = 2
CLAIM_RETRIES = 3

# Batch sizes
BASE_BATCH_SIZE = 50
MIN_BATCH_SIZE = 10
MAX_BATCH_SIZE = 100

# Load thresholds
CONCURRENCY_LOAD_THRESHOLDS = (0.5, 1.0)  # -> 3, 2, 1 concurrent jobs
BATCH_SIZE_LOAD_THRESHOLDS = (0.3, 0.7)  # -> 2x, 1x, 0.5x base batch size

# Time windows
JOB_RETENTION_DAYS = 7
STATS_RETENTION_DAYS = 30
STATS_WINDOW_HOURS = 24

# Raw records that keep failing at the catalog store
RECORD_MAX_ATTEMPTS = 5
