"""
Shared constants for the docs archiver.

Contains common configuration values used across multiple modules.
"""

# Default user agent string for all HTTP requests
# Used by both the browser renderer and the resource store
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Default resource fetch timeout in seconds
DEFAULT_TIMEOUT = 30

# Default page render timeout in milliseconds (for Playwright)
DEFAULT_PAGE_TIMEOUT = 60000

# Concurrent crawl workers
DEFAULT_WORKERS = 1

# Resources fetched per download batch
DEFAULT_BATCH_SIZE = 5

# Pages archived when no budget is given; -1 means unlimited
DEFAULT_MAX_PAGES = 5
UNLIMITED_PAGES = -1

# Output locations
DEFAULT_OUTPUT_DIR = "output"
JSON_DATA_DIR = "json_data"
SUMMARY_FILE = "extraction_summary.json"

# Extra origins allowed besides the archived domain (docs CDNs)
DEFAULT_ALLOWED_HOSTS = (
    "mintlify.b-cdn.net",
    "mintlify.s3.us-west-1.amazonaws.com",
    "cdn.jsdelivr.net",
)

# Files above this size are not rewritten
MAX_REWRITE_BYTES = 10 * 1024 * 1024
