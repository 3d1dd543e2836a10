"""Bus worker entry point: ``python -m event_manager.worker``."""
import logging
import signal

from event_manager.config import settings
from event_manager.messaging.consumer import RsvpConsumer

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    consumer = RsvpConsumer()

    def _shutdown(signum, frame):
        logger.info("Received signal %s, stopping consumer", signum)
        consumer.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    consumer.run()


if __name__ == "__main__":
    main()
