"""
Error taxonomy for the reservation service.

Every error carries the HTTP status the API answers with. Views raise these
and the Flask error handlers in ``app.py`` render them as ``{"error": ...}``.
"""


class ReservacionError(Exception):
    status_code = 500
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ReservacionError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationRequired(ReservacionError):
    status_code = 401
    default_message = "Unauthorized"


class PermissionDenied(ReservacionError):
    status_code = 403
    default_message = "Forbidden"


class RecentLoginRequired(PermissionDenied):
    default_message = "For security, please log out and log back in to continue."


class NotFoundError(ReservacionError):
    status_code = 404
    default_message = "Not found"


class ReservationsClosed(ReservacionError):
    status_code = 409
    default_message = "This event is not accepting reservations."


class UploadFailed(ReservacionError):
    """Image upload to blob storage failed. Callers continue without the image."""
    status_code = 502
    default_message = "Image upload failed."


class StoreError(ReservacionError):
    status_code = 502
    default_message = "The request could not be completed. Please try again."
