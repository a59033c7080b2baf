"""Errors raised by the service layer and their JSON rendering."""
from flask import jsonify


class LoanDeskError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"status": "error", "message": self.message}


class ValidationError(LoanDeskError):
    status_code = 400


class AuthError(LoanDeskError):
    status_code = 401


class AccessDenied(LoanDeskError):
    status_code = 403


class NotFound(LoanDeskError):
    status_code = 404


def register_error_handlers(app):
    @app.errorhandler(LoanDeskError)
    def _handle_loandesk_error(err):
        if err.status_code >= 500:
            app.logger.error("Unhandled service error: %s", err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(404)
    def _handle_not_found(_err):
        return jsonify({"status": "error", "message": "Not found"}), 404

    @app.errorhandler(405)
    def _handle_method_not_allowed(_err):
        return jsonify({"status": "error", "message": "Method not allowed"}), 405
