import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured
    root = logging.getLogger()
    if not _configured:
        logging.basicConfig(format=LOG_FORMAT)
        _configured = True
    root.setLevel(level.upper())
