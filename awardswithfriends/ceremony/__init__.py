"""The ceremony blueprint."""

from flask import Blueprint

bp = Blueprint("ceremony", __name__, url_prefix="/ceremonies")

from . import routes  # noqa: E402

__all__ = ["routes"]
