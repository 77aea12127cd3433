import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{file}:{line}:{function}</cyan> | "
    "<level>{message}</level>"
)


def setup_logger(log_level: str = "INFO") -> None:
    """Replace loguru's default sink with a formatted stderr sink.

    stderr keeps stdout free for command output.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=log_level.upper(),
        colorize=True,
        backtrace=True,
        diagnose=False,
    )
