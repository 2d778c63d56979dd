import sys
import logging
from typing import Any, Callable, Dict, Iterable

from loguru import logger

from rostersync.config.settings import AppSettings

SENSITIVE_KEYS = ["key", "token", "password", "secret", "authorization"]


def mask_secret(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "********"


def make_sensitive_data_filter(
    secrets: Iterable[str],
) -> Callable[[Dict[str, Any]], bool]:
    """Builds a loguru filter that masks credentials in log records."""
    known_secrets = [s for s in secrets if s]

    def mask_value(key: str, value: Any) -> Any:
        if isinstance(value, str):
            if any(sk in key.lower() for sk in SENSITIVE_KEYS):
                return mask_secret(value)
            return value
        elif isinstance(value, dict):
            return {k: mask_value(str(k), v) for k, v in value.items()}
        elif isinstance(value, list):
            return [mask_value(key, item) for item in value]
        return value

    def sensitive_data_filter(record: Dict[str, Any]) -> bool:
        if "extra" in record and isinstance(record["extra"], dict):
            for extra_key, extra_value in list(record["extra"].items()):
                record["extra"][extra_key] = mask_value(extra_key, extra_value)

        # Configured credentials never reach the sink verbatim
        for secret in known_secrets:
            if secret in record["message"]:
                record["message"] = record["message"].replace(secret, "********")

        return True  # Keep the record after masking

    return sensitive_data_filter


class InterceptHandler(logging.Handler):
    """Routes standard logging records (httpx, tenacity) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(settings: AppSettings) -> None:
    """Configures Loguru logger based on application settings."""
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=False,  # Locals can hold API keys
        filter=make_sensitive_data_filter(settings.secrets),
    )

    logger.info(f"Logging initialized with level: {settings.log_level}")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.debug("Standard logging intercepted.")
