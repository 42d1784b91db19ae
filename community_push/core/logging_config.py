"""
Logging setup and request correlation.

모든 모듈은 ``logging.getLogger(__name__)`` 로 로그를 남기고, 이 모듈이
출력 형식(JSON 또는 텍스트)과 요청 ID 부여를 담당한다.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import settings

_request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# 표준 LogRecord 속성: extra 로 취급하지 않음
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# JSON 최상위로 끌어올리는 extra 키
_PROMOTED_KEYS = ("component", "operation", "duration_ms", "status_code")

# 요청 본문을 DEBUG 로 남기는 라이브러리
_NOISY_LOGGERS = ("pywebpush", "urllib3", "httpx", "httpcore")


def new_request_id() -> str:
    """req_<UTC 시각>_<8자리 hex>"""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"req_{stamp}_{uuid.uuid4().hex[:8]}"


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_var.get()


class StructuredFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}

        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
            "request_id": extra.pop("request_id", None) or get_request_id(),
        }
        for key in _PROMOTED_KEYS:
            entry[key] = extra.pop(key, None)

        if record.exc_info and record.exc_info[0] is not None:
            extra["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        if extra:
            entry["extra"] = extra

        return json.dumps({k: v for k, v in entry.items() if v is not None}, ensure_ascii=False, default=str)


class RequestIdFilter(logging.Filter):
    """텍스트 포맷에서 %(request_id)s 를 쓸 수 있게 채워 넣는다"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or "-"
        return True


_installed_handlers: List[logging.Handler] = []


def setup_logging(log_level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Install the console handler once; later calls are no-ops."""
    if _installed_handlers:
        return

    level = (log_level or settings.log_level).upper()
    use_json = settings.log_json if json_output is None else json_output

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.addFilter(RequestIdFilter())
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    _installed_handlers.append(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging initialized (level=%s, json=%s)", level, use_json)
