import logging, os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("BOARDVOTE_LOG_LEVEL", "INFO").upper()

def setup_logging():
    # Configure root once
    logging.basicConfig(level=getattr(logging, _DEFAULT_LEVEL, logging.INFO), format=LOG_FORMAT)

    # Main app logger
    logger = logging.getLogger("BOARDVOTE")
    logger.setLevel(getattr(logging, _DEFAULT_LEVEL, logging.INFO))
    return logger

def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("BOARDVOTE")
    if not name:
        return base
    # accept both "elections.ballots" and a module __name__ like "BOARDVOTE.elections.ballots"
    if name == "BOARDVOTE" or name.startswith("BOARDVOTE."):
        return logging.getLogger(name)
    return base.getChild(name)

logger = setup_logging()
