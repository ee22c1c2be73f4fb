from __future__ import annotations

import logging
import re
import sys

from settings import SETTINGS


class SecretFilter(logging.Filter):
    """Masks credentials that leak into log messages (provider keys, bearer tokens)."""

    KEY_PATTERN = re.compile(
        r"((?:secret|token|key|password|authorization)[^\s=:'\"]*['\"]?\s*[:=]\s*['\"]?)([\w.-]+)",
        re.IGNORECASE,
    )
    BEARER_PATTERN = re.compile(r"(Bearer\s+)[\w.-]+", re.IGNORECASE)

    def _mask(self, text: str) -> str:
        text = self.BEARER_PATTERN.sub(r"\1[REDACTED]", text)
        return self.KEY_PATTERN.sub(r"\1[REDACTED]", text)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._mask(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(self._mask(str(a)) for a in record.args)
        return True


def configure_logging(level: str | None = None) -> None:
    numeric_level = getattr(logging, (level or SETTINGS.log_level).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    if any(getattr(h, "_telecom_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            "%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(SecretFilter())
    handler._telecom_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # uvicorn ships its own handlers; route them through ours instead.
    for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(noisy).handlers = []
        logging.getLogger(noisy).propagate = True
