# geophoto/core/logger.py
# 로깅 설정: 개발은 읽기 쉬운 콘솔 포맷, 운영은 JSON 라인

import json
import logging
import logging.config
import sys

from geophoto.core.config import settings


class JsonFormatter(logging.Formatter):
    """로그 레코드를 한 줄 JSON으로 직렬화"""

    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False)


def build_logging_config(env: str, level: str) -> dict:
    if env.lower() == "production":
        formatter = {"()": JsonFormatter, "datefmt": "%Y-%m-%dT%H:%M:%S%z"}
    else:
        formatter = {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }

    def _logger(lvl: str) -> dict:
        return {"level": lvl, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
            },
        },
        "loggers": {
            "root": {"level": level, "handlers": ["console"]},
            "geophoto": _logger(level),
            "uvicorn": _logger("INFO"),
            "uvicorn.access": _logger("INFO"),
            "uvicorn.error": _logger("INFO"),
            # 외부 라이브러리 노이즈 감소
            "pymongo": _logger("WARNING"),
            "motor": _logger("WARNING"),
        },
    }


def setup_logging() -> None:
    logging.config.dictConfig(build_logging_config(settings.ENVIRONMENT, settings.LOG_LEVEL))
    logging.getLogger("geophoto").info(
        f"Logging setup complete for {settings.ENVIRONMENT} environment with level {settings.LOG_LEVEL}"
    )
