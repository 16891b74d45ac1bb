import json
import logging
from datetime import datetime, timezone


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line.

    Records whose ``msg`` is a dict are emitted field by field so callers
    can log structured payloads (``logger.info({"event": ..., ...})``).
    ``requestId`` passed through ``extra`` is copied onto the line.
    """

    def format(self, record: logging.LogRecord) -> str:
        data = dict(record.msg) if isinstance(record.msg, dict) else {"message": record.getMessage()}

        request_id = getattr(record, "requestId", None)
        if request_id and "requestId" not in data:
            data["requestId"] = request_id

        data.setdefault("ts", datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"))
        data.setdefault("level", record.levelname)
        data.setdefault("logger", record.name)

        if record.exc_info:
            data["stack"] = self.formatException(record.exc_info)

        return json.dumps(data, ensure_ascii=False, default=str)
