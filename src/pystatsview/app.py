"""pystatsview - demo dashboard entry point."""

import logging

from pystatsview.config import get_settings
from pystatsview.log import setup_logging
from pystatsview.registry import ViewManager, default_viewers
from pystatsview.sources import CyclicCounterSource

logger = logging.getLogger(__name__)


def main() -> None:
    """Entry point serving the runtime charts plus a demo counter."""
    setup_logging()

    viewers = default_viewers()
    viewers.register(CyclicCounterSource())

    manager = ViewManager(viewers, settings=get_settings())
    try:
        manager.start()
    finally:
        logger.info("Graceful shutdown")
        manager.stop()


if __name__ == "__main__":
    main()
