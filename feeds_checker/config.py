import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

FEEDS_LIMIT = int(os.getenv("FEEDS_LIMIT", 32))
REFRESH_INTERVAL = float(os.getenv("REFRESH_INTERVAL", 60))
IDLE_WINDOW = float(os.getenv("IDLE_WINDOW", 6 * 60 * 60))  # 6 hours
FAILURE_WINDOW = float(os.getenv("FAILURE_WINDOW", 6 * 60 * 60))  # 6 hours

STAT_TIMEOUT = float(os.getenv("STAT_TIMEOUT", 10))
ARCHIVE_TIMEOUT = float(os.getenv("ARCHIVE_TIMEOUT", 600))  # archives can be large

ITEM_ELEMENT = os.getenv("ITEM_ELEMENT", "vacancy")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def validate_config() -> None:
    """
    Validate configuration parameters.
    Raises ValueError if any value is missing or invalid.
    """
    if PORT <= 0:
        raise ValueError("PORT must be a positive integer.")
    if FEEDS_LIMIT <= 0:
        raise ValueError("FEEDS_LIMIT must be a positive integer.")
    if REFRESH_INTERVAL <= 0:
        raise ValueError("REFRESH_INTERVAL must be positive.")
    if IDLE_WINDOW <= 0:
        raise ValueError("IDLE_WINDOW must be positive.")
    if FAILURE_WINDOW <= 0:
        raise ValueError("FAILURE_WINDOW must be positive.")
    if STAT_TIMEOUT <= 0 or ARCHIVE_TIMEOUT <= 0:
        raise ValueError("STAT_TIMEOUT and ARCHIVE_TIMEOUT must be positive.")
    if ITEM_ELEMENT == "":
        raise ValueError("ITEM_ELEMENT environment variable is empty.")
