import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

# Context variable to track the request being served, per thread/task
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

def get_request_id() -> str:
    """Retrieve the current request_id or generate a new one if not set."""
    rid = request_id_ctx.get()
    if rid is None:
        rid = new_request_id()
    return rid

def new_request_id() -> str:
    """Set a fresh request id on the current context and return it."""
    rid = uuid.uuid4().hex[:12]
    request_id_ctx.set(rid)
    return rid

@contextmanager
def request_scope():
    """Bind a fresh request id for the duration of the block, then restore the previous one."""
    token = request_id_ctx.set(uuid.uuid4().hex[:12])
    try:
        yield request_id_ctx.get()
    finally:
        request_id_ctx.reset(token)

class RequestIDFilter(logging.Filter):
    """Injects request_id into log records."""
    def filter(self, record):
        record.request_id = get_request_id()
        return True

def configure_logging(level: str = "INFO"):
    """Configures the root logger with a standard format including request_id."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplication
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | [%(request_id)s] | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestIDFilter())

    logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

# Initialize logging on import with default settings
configure_logging()
logger = logging.getLogger("assistant")
