"""
CMS exceptions

Raised by repositories and services, translated to HTTP responses in main.py.
"""
from fastapi import status


class CmsError(Exception):
    """Base error carrying the HTTP status it maps to"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(CmsError):
    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(CmsError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(CmsError):
    status_code = status.HTTP_403_FORBIDDEN


class MethodNotAllowedError(CmsError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
