# timetracker/core/logging_setup.py
import logging
import re

_SECRET_PATTERN = re.compile(r"(://[^:/@]+:)([^@]+)(@)")


class SecretMaskingFilter(logging.Filter):
    """Masks passwords embedded in connection URLs before they reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = _SECRET_PATTERN.sub(r"\1***\3", record.msg)
        return True


def mask_url(url: str) -> str:
    return _SECRET_PATTERN.sub(r"\1***\3", url or "")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(f, SecretMaskingFilter) for f in handler.filters):
            handler.addFilter(SecretMaskingFilter())
