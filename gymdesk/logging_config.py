import logging
import json
import re
import sys
from gymdesk.config import LOG_LEVEL
from gymdesk.utils import utcnow

SECRET_RE = re.compile(r"(authorization|api[_-]?key|password|token)[\"':= ]+([^,\s]+)", re.I)

EXTRA_FIELDS = (
    "request_id", "path", "method", "status", "latency_ms",
    "user_id", "checkin_status", "event", "subscribers",
)

def redact_secrets(msg):
    return SECRET_RE.sub(r"\1=***", msg)

class JsonLogFormatter(logging.Formatter):
    def format(self, record):
        log = {
            "ts": utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": redact_secrets(str(record.getMessage())),
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log[field] = getattr(record, field)
        if record.exc_info:
            log["exc"] = self.formatException(record.exc_info)
        return json.dumps(log, default=str)

def setup_logging(level=LOG_LEVEL):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonLogFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

def get_logger(name="gymdesk"):
    return logging.getLogger(name)
