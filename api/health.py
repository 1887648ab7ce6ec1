from datetime import datetime, timezone

from flask import Blueprint, current_app

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            environment:
              type: string
              example: dev
            timestamp:
              type: string
    """
    return {
        "status": "ok",
        "environment": current_app.config.get("APP_ENV"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }, 200
