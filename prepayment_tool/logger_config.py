import logging
import json
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "PrepaymentToolLogger"

# Extra attributes copied from log records into the JSON output
CONTEXT_FIELDS = ("company_code", "run_id", "record_index", "test_id")


class JSONFormatter(logging.Formatter):
    """Renders each record as one JSON object per line.

    Context attributes listed in CONTEXT_FIELDS are always present in the
    output, as null when the record does not carry them.
    """

    def __init__(self, tool_name: str = "prepayment_tool"):
        super().__init__()
        self.tool_name = tool_name

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "tool": self.tool_name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for field in CONTEXT_FIELDS:
            log_data[field] = getattr(record, field, None)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_base_path: Optional[str] = None,
    company_code: Optional[str] = None,
    run_id: Optional[str] = None,
) -> logging.Logger:
    """Configures and initializes centralized logging for the tool.

    Sets up the 'PrepaymentToolLogger' logger with two handlers:
    1.  **RotatingFileHandler**: Writes INFO and above to a date-named file
        in JSON format. The file is rotated at 10MB and up to 30 backups are
        kept, so every stage run leaves a machine-readable trail.
    2.  **StreamHandler**: Writes INFO and above to the console in a short
        human-readable format.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        log_base_path: Directory that receives a "Logs/prepayment_tool"
            folder. If None, a local "logs" directory is used.
        company_code: Default company code attached to structured records.
        run_id: Identifier of the current stage run (optional).

    Returns:
        logging.Logger: The configured logger instance.
    """
    if log_base_path:
        log_dir = Path(log_base_path) / "Logs" / "prepayment_tool"
    else:
        log_dir = Path("logs")

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    file_handler = RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=30, encoding="utf-8"
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(JSONFormatter(tool_name="prepayment_tool"))
    logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.INFO)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(stream_handler)

    if company_code:
        logger.company_code = company_code
    if run_id:
        logger.run_id = run_id

    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    company_code: Optional[str] = None,
    run_id: Optional[str] = None,
    **kwargs,
) -> None:
    """Emits `message` with company/run context attached as record attributes.

    Explicit `company_code` and `run_id` win over the defaults stored on the
    logger by setup_logging(). Further keyword arguments (record_index,
    test_id) are passed through unchanged.
    """
    extra = {}
    if company_code or hasattr(logger, "company_code"):
        extra["company_code"] = company_code or getattr(logger, "company_code", None)
    if run_id or hasattr(logger, "run_id"):
        extra["run_id"] = run_id or getattr(logger, "run_id", None)

    extra.update(kwargs)

    logger.log(level, message, extra=extra)
