import logging
import sys

FORMAT = "%(asctime)s [rank {rank}] %(levelname)s %(name)s: %(message)s"


def configure_logging(rank: int, level="WARNING") -> logging.Logger:
    """Send collective_average logs to stderr, tagged with this process's rank."""
    logger = logging.getLogger("collective_average")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(FORMAT.format(rank=rank)))
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False
    return logger
