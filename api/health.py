import logging

from flask import Blueprint
from sqlalchemy.exc import SQLAlchemyError

from models import storage

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Liveness plus a database round-trip
    ---
    tags:
      - Health
    responses:
      200:
        description: Server and database are reachable
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            message:
              type: string
              example: Server is running
            database:
              type: string
              example: ok
      503:
        description: The credential store cannot be reached
    """
    try:
        storage.ping()
    except SQLAlchemyError:
        logger.exception("health: database unreachable")
        return {"status": "error", "message": "Database unavailable", "database": "unavailable"}, 503
    return {"status": "ok", "message": "Server is running", "database": "ok"}, 200
