# core/errors.py
"""
Error types raised by services and rendered at the request boundary
"""


class ApiError(Exception):
    """Generic failure, rendered as 500"""

    status_code = 500

    def __init__(self, message: str = 'Operation failed'):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(ApiError):
    """Missing or malformed input"""

    status_code = 400


class NotAuthenticatedError(ApiError):
    """No usable Onshape session"""

    status_code = 401

    def __init__(self, message: str = 'Not authenticated with Onshape'):
        super().__init__(message)


class NotFoundError(ApiError):
    """Entity does not exist"""

    status_code = 404
