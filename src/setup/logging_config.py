import logging

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Apply the root log level and format once per process."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _configured = True
