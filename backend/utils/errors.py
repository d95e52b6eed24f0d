# backend/utils/errors.py
from typing import Dict, List, Optional


class AppError(Exception):
    """Error with a user-facing message, rendered as JSON by the app handlers."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


# Expected business rule violations (empty cart, duplicate name, minimum quantity...)
class BusinessError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


# An external collaborator (geocoding, messaging) failed or is misconfigured
class ServiceError(AppError):
    status_code = 502
