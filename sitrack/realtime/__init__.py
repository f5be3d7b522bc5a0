from flask import Blueprint

bp = Blueprint(
    "realtime",
    __name__,
    url_prefix="/api/realtime",
)

from . import api  # noqa: E402
