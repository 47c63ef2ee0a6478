import os
import sys

from loguru import logger


def setup_logger(*, json_logs: bool = False, level: str = "INFO", log_file: bool = True) -> None:
    """Configure loguru for the scanner, the watch loop and the API.

    Console level controlled by LOG_LEVEL env (default: INFO).
    When ``log_file`` is set, a rotating file also captures DEBUG so a
    verdict can be traced back to the factor checks that produced it.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level)
    else:
        logger.add(
            sys.stdout,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
                "<level>{message}</level>"
            ),
            level=console_level,
            colorize=True,
        )

    if log_file:
        logger.add(
            "logs/coin_signal_{time:YYYY-MM-DD}.log",
            rotation="20 MB",
            retention="7 days",
            compression="gz",
            level="DEBUG",
            serialize=json_logs,
        )
