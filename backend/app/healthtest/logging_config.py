import logging
import sys
from pathlib import Path

from healthtest.core.config import settings


def setup_logging(log_dir: str | None = None, level: str | None = None):
    """Configure root logging: file log plus stdout."""
    log_path = Path(log_dir or settings.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)

    log_file = log_path / "healthtest.log"

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger("healthtest")
    logger.info("Logging configured (file=%s)", log_file)
    return logger
