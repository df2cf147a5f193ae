"""
Centralized error handlers for the Flask applications.
"""

from http import HTTPStatus

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.serializers import error_response
from smartmenu_shared.validation import ServiceError, ValidationError

logger = get_logger(__name__)


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Every error answers with a JSON body carrying an `error` message. Storage
    failures keep their details in the server log only.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        logger.warning(f"Validation error: {e}")
        return jsonify(error_response(str(e))), HTTPStatus.BAD_REQUEST

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        logger.warning(f"Pydantic validation error: {e}")
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in e.errors()
        ]
        return jsonify(
            error_response("Invalid request body", {"details": details})
        ), HTTPStatus.BAD_REQUEST

    @app.errorhandler(ServiceError)
    def handle_service_error(e: ServiceError):
        if e.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error(f"Service error: {e}", exc_info=True)
        else:
            logger.info(f"Service error {int(e.status)}: {e}")
        body = error_response(e.message)
        body.update(e.extra)
        return jsonify(body), e.status

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        logger.error(f"Database error: {e}", exc_info=True)
        return jsonify(error_response("Database error")), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        logger.warning(f"HTTP exception {e.code}: {e.description}")
        return jsonify(error_response(e.description or str(e))), e.code

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify(
            error_response("Internal server error")
        ), HTTPStatus.INTERNAL_SERVER_ERROR
