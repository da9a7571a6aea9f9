# chiffrage/errors.py
"""Error types raised at the application boundaries.

The rate resolver and the aggregation engine never raise for well-formed
documents; only input validation, persistence, export and the suggestion
client report failures.
"""

import logging

from flask import jsonify

logger = logging.getLogger(__name__)


class ChiffrageError(Exception):
    """Base class for reported (non-fatal) application errors."""

    status_code = 500


class ValidationError(ChiffrageError):
    """User input rejected before anything is written."""

    status_code = 400


class PersistenceError(ChiffrageError):
    """A save or delete failed; the session was rolled back."""

    status_code = 500


class ExportError(ChiffrageError):
    """The print view or spreadsheet could not be produced."""

    status_code = 500


class SuggestionError(ChiffrageError):
    """The quote suggestion service is unavailable or answered garbage."""

    status_code = 502


def register_error_handlers(app) -> None:
    @app.errorhandler(ChiffrageError)
    def handle_chiffrage_error(err):
        if err.status_code >= 500:
            logger.error("%s: %s", type(err).__name__, err)
        return jsonify(error=str(err)), err.status_code
