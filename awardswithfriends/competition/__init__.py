"""The competition blueprint."""

from flask import Blueprint

bp = Blueprint("competition", __name__, url_prefix="/competitions")

from . import routes  # noqa: E402

__all__ = ["routes"]
