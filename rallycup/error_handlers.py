from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError

from .errors import (
    AppError,
    ConflictError,
    FatalReconciliationError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
    TransactionFailure,
    ValidationError,
)

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(error, **extra):
    """Build the JSON body shared by every application error."""
    body = {
        "success": False,
        "error": error.kind,
        "message": error.message,
        "context": error.context,
    }
    body.update(extra)
    return jsonify(body), error.status_code


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(PreconditionError)
def handle_precondition_error(error):
    """Handles operations attempted before the tournament is ready."""
    current_app.logger.warning(f"Precondition Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(ConflictError)
def handle_conflict_error(error):
    """Handles edits to immutable artifacts and invalid transitions."""
    current_app.logger.warning(f"Conflict Error: {error.message} {error.context}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(PermissionDeniedError)
def handle_permission_denied_error(error):
    """Handles actors the authorization oracle refused."""
    current_app.logger.warning(f"Permission Denied: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(TransactionFailure)
def handle_transaction_failure(error):
    """Handles store transactions that could not commit."""
    current_app.logger.error(f"Transaction Failure: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(FatalReconciliationError)
def handle_fatal_reconciliation_error(error):
    """Handles a failed transition whose rollback also failed."""
    current_app.logger.critical(
        f"Fatal Reconciliation Error: {error.message} {error.context}"
    )
    return _error_response(error, requiresManualReconciliation=True)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.error(f"Application Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return jsonify({"success": False, "error": "NotFound", "message": "Not found."}), 404


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return (
        jsonify(
            {
                "success": False,
                "error": "InternalServerError",
                "message": "An unexpected error occurred.",
            }
        ),
        500,
    )


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """Handles CSRF errors, which usually indicate an expired or forged request."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return (
        jsonify({"success": False, "error": "CSRFError", "message": e.description}),
        400,
    )
