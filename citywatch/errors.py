# citywatch/errors.py
import logging

from flask import jsonify
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)


class ApiException(Exception):
    """Base for errors that map onto an HTTP status and a client-safe message."""
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(ApiException):
    status_code = 400


class ConflictError(ApiException):
    # duplicate email at registration; kept 400 for existing clients
    status_code = 400


class AuthenticationError(ApiException):
    status_code = 401


class PermissionDenied(ApiException):
    status_code = 403


class NotFoundError(ApiException):
    status_code = 404


def _error(message, status):
    return jsonify(success=False, message=message), status


def register_error_handlers(app):
    @app.errorhandler(ApiException)
    def handle_api_exception(err):
        return _error(err.message, err.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        return _error(err.description, err.code)

    @app.errorhandler(PyMongoError)
    def handle_storage_error(err):
        log.exception("Storage error: %s", err)
        return _error("Internal Server Error", 500)

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        log.exception("Unhandled error: %s", err)
        return _error("Internal Server Error", 500)
