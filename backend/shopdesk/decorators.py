# Overview: Request decorators for API routes.

from functools import wraps

from flask import current_app, jsonify

from .errors import EngineError, InfrastructureError, NotFoundError, ValidationError


def status_for(exc: EngineError) -> int:
    """
    HTTP status for an engine error.

    - ValidationError: 400
    - NotFoundError: 404
    - other business rules: 409
    - InfrastructureError: 503 (retryable)
    """
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InfrastructureError):
        return 503
    return 409


def handle_engine_errors(operation: str):
    """
    Translate engine errors into JSON error responses.

    Anything that is not an EngineError is logged with its traceback and
    reported as a 500 without internals.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except EngineError as e:
                status = status_for(e)
                if status >= 500:
                    current_app.logger.error("%s failed: %s", operation, e)
                return jsonify(e.to_dict()), status
            except Exception:
                current_app.logger.exception("Failed to %s", operation)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function

    return decorator
