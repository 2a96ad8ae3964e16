"""
=============================================================================
MESSAGE LAYER CONFIGURATION
=============================================================================

Settings shared by the engine, the parameter resolver and upload storage.

The config object is passed EXPLICITLY to whatever needs it:

    config = MessageConfig.from_env()
    config.validate()
    config.setup_logging()
    engine = MessageEngine(config)

Nothing in httpmessage reads environment variables or module globals at
request time.

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    HTTPMSG_CHARSET           Default request/response charset
    HTTPMSG_LOCALE            Locale when Accept-Language is absent
    HTTPMSG_TMPDIR            Upload working directory
    HTTPMSG_DEFAULT_TYPE      Response type when a handler sets none
    HTTPMSG_MAX_REQUEST_SIZE  Largest raw request accepted (bytes)
    HTTPMSG_SERVER_NAME       Value of the Server header
    HTTPMSG_LOG_LEVEL         DEBUG, INFO, WARNING...
    HTTPMSG_LOG_FORMAT        "text" or "json"

=============================================================================
"""

import codecs
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .http.errors import InvalidMediaType
from .http.media_type import MediaType


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _default_tmpdir() -> Path:
    return Path(tempfile.gettempdir()) / "httpmessage"


@dataclass
class MessageConfig:
    """
    Configuration for the message layer.

    Development:
        MessageConfig(log_level="DEBUG")

    Uploads on a dedicated volume:
        MessageConfig(tmpdir=Path("/var/uploads"), max_request_size=100 * 1024 * 1024)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NEGOTIATION DEFAULTS
    # ─────────────────────────────────────────────────────────────────────

    charset: str = "utf-8"
    """
    Charset used when the Content-Type carries none, and for every
    text response body.
    """

    locale: str = "en-US"
    """Locale reported when the client sends no Accept-Language."""

    default_type: str = "text/html"
    """Content-Type of a text response whose handler never set one."""

    # ─────────────────────────────────────────────────────────────────────
    # UPLOADS AND LIMITS
    # ─────────────────────────────────────────────────────────────────────

    tmpdir: Path = field(default_factory=_default_tmpdir)
    """Working directory uploads are saved to by default."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Raw requests larger than this are answered with 413."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "httpmessage/1.0"

    log_level: str = "INFO"

    log_format: str = "text"
    """'text' for humans, 'json' for log aggregators."""

    def __post_init__(self):
        self.tmpdir = Path(self.tmpdir)

    @property
    def default_media_type(self) -> MediaType:
        return MediaType.parse(self.default_type)

    @classmethod
    def from_env(cls) -> "MessageConfig":
        """
        Create configuration from HTTPMSG_* environment variables.

        Usage:
            HTTPMSG_CHARSET=iso-8859-1 HTTPMSG_LOG_LEVEL=DEBUG python app.py
        """
        return cls(
            charset=os.getenv("HTTPMSG_CHARSET", "utf-8"),
            locale=os.getenv("HTTPMSG_LOCALE", "en-US"),
            tmpdir=Path(os.getenv("HTTPMSG_TMPDIR", str(_default_tmpdir()))),
            default_type=os.getenv("HTTPMSG_DEFAULT_TYPE", "text/html"),
            max_request_size=int(os.getenv("HTTPMSG_MAX_REQUEST_SIZE", str(10 * 1024 * 1024))),
            server_name=os.getenv("HTTPMSG_SERVER_NAME", "httpmessage/1.0"),
            log_level=os.getenv("HTTPMSG_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTPMSG_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """Fail fast on values that would only break at request time."""
        try:
            codecs.lookup(self.charset)
        except LookupError:
            raise ValueError(f"Unknown charset: {self.charset}")

        try:
            media_type = self.default_media_type
        except InvalidMediaType:
            raise ValueError(f"Invalid default_type: {self.default_type}")
        if media_type.is_wildcard:
            raise ValueError(f"default_type must be concrete, got {self.default_type}")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format}")

    def setup_logging(self) -> None:
        """Configure logging based on config."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)

        if self.log_format == "json":
            handler = logging.StreamHandler()
            handler.setFormatter(JsonFormatter())
            logging.basicConfig(level=level, handlers=[handler])
        else:
            logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        logging.getLogger("httpmessage").setLevel(level)


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)
