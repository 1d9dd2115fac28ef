from __future__ import annotations
import logging
import sys
import uuid
from pythonjsonlogger import jsonlogger
from fastapi import Request
from ..config import get_settings


def setup_logging() -> None:
    S = get_settings()
    root = logging.getLogger()
    if root.handlers:
        for h in list(root.handlers):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(message)s %(asctime)s %(request_id)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(S.LOG_LEVEL)

    # quiet noisy loggers if desired
    logging.getLogger("uvicorn.access").setLevel("WARNING")

def get_request_id(req: Request) -> str:
    hdr = get_settings().REQUEST_ID_HEADER
    rid = req.headers.get(hdr)
    return rid if rid else uuid.uuid4().hex
