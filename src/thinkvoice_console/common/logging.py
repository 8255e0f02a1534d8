"""JSON-lines logging for ThinkVoice Console.

Records may carry tenant context through ``extra``; the known context keys
are lifted into the JSON entry so log lines can be filtered per tenant or
per impersonating super-admin.
"""

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ("tenant_id", "user_id", "impersonator_id", "migration", "step")

_HANDLER_MARK = "_thinkvoice_handler"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1]:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Attach one stdout JSON handler to the package logger.

    Safe to call more than once (the app factory runs per test).
    """
    pkg = logging.getLogger("thinkvoice_console")
    resolved = logging.getLevelName(level.upper())
    pkg.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    if any(getattr(h, _HANDLER_MARK, False) for h in pkg.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    setattr(handler, _HANDLER_MARK, True)
    pkg.addHandler(handler)
    pkg.propagate = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"thinkvoice_console.{name}")
