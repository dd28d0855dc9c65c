"""Health check script for Docker container."""

import sys
import logging

from unscroll.config import get_settings, validate_credentials
from unscroll.constants import MEDIA_ITEMS_COLLECTION
from unscroll.models import MediaItem
from unscroll.store import create_store
from unscroll.watch_history import check_invariants

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main():
    """Check that configuration loads and the document store answers."""
    try:
        settings = get_settings()
    except Exception as e:
        logger.error(f"[ERROR] UNHEALTHY: Failed to load configuration: {e}")
        sys.exit(1)

    try:
        store = create_store(settings)
        docs = store.query(MEDIA_ITEMS_COLLECTION)
    except Exception as e:
        logger.error(f"[ERROR] UNHEALTHY: Document store ({settings.store_backend}) unreachable: {e}")
        sys.exit(1)

    for doc in docs:
        try:
            problems = check_invariants(MediaItem.from_document(doc["id"], doc))
        except ValueError as e:
            problems = [f"unreadable document: {e}"]
        for problem in problems:
            logger.warning(f"[WARN] Media item {doc['id']}: {problem}")

    # Providers are optional; their absence only limits features
    is_valid, missing = validate_credentials(settings)
    if not is_valid:
        for name in missing:
            logger.warning(f"[WARN] Provider not configured: {name}")

    logger.info("[OK] HEALTHY: Configuration loaded and store reachable")
    sys.exit(0)


if __name__ == "__main__":
    main()
