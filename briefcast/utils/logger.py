import logging
import sys
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Fields of the briefing run the current task belongs to
_run_context: ContextVar[dict] = ContextVar("briefcast_run_context", default={})


def bind_run_context(**fields) -> None:
    """Attach fields (user_id, stage, ...) to every log record of the current task."""
    _run_context.set({**_run_context.get(), **fields})


def clear_run_context() -> None:
    _run_context.set({})


class RunContextFilter(logging.Filter):
    def filter(self, record):
        record.run = _run_context.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with run context flattened in."""

    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        entry.update(getattr(record, "run", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", json_path: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``briefcast`` logger tree.
    Human readable lines go to stdout; structured JSON goes to ``json_path`` when set.
    """
    root = logging.getLogger("briefcast")
    root.setLevel(level.upper())
    if root.handlers:
        return root

    context = RunContextFilter()

    console = logging.StreamHandler(sys.stdout)
    console.addFilter(context)
    console.setFormatter(logging.Formatter('%(asctime)s %(levelname)-7s %(name)s: %(message)s', datefmt='%H:%M:%S'))
    root.addHandler(console)

    if json_path:
        path = Path(json_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        structured = logging.FileHandler(path)
        structured.addFilter(context)
        structured.setFormatter(JsonFormatter())
        root.addHandler(structured)

    return root
