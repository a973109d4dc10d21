"""Run the awardswithfriends API."""

import atexit
import os

from flask import jsonify

from awardswithfriends import create_app
from awardswithfriends.context import VIEWS_EXTENSION

app = create_app()


@app.route("/health")
def health_check():
    """Report liveness and how many users hold live views."""
    views = app.extensions.get(VIEWS_EXTENSION)
    return jsonify(
        {
            "status": "ok",
            "project": app.config["FIREBASE_PROJECT_ID"],
            "live_users": views.user_count() if views is not None else 0,
        }
    )


@atexit.register
def close_live_views():
    """Stop every Firestore listener before the process exits."""
    views = app.extensions.get(VIEWS_EXTENSION)
    if views is not None:
        views.close()


if __name__ == "__main__":
    app.run(
        debug=os.environ.get("FLASK_DEBUG") == "1",
        host="0.0.0.0",  # nosec
        port=int(os.environ.get("PORT", "8080")),
    )
