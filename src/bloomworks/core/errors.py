"""Error taxonomy for the submission pipeline.

Two families live here:

- :class:`BloomworksError` and its subclasses are *pipeline* errors.  Each
  carries the HTTP status code and the user-facing message the API layer
  should return, so route handlers never have to inspect error text.
- :class:`ImageServiceError` and :class:`ImageSafetyRejection` are *client*
  errors raised by the image-generation adapter.  They carry the upstream
  status and error code so the retry policy in
  :mod:`bloomworks.core.image_acquirer` can branch on a type rather than on
  message patterns.

:class:`PublishWarning` is never raised to callers; the CMS publisher logs
it when a best-effort push fails.
"""

from __future__ import annotations


class BloomworksError(Exception):
    """Base class for errors that map directly onto an HTTP response.

    Attributes:
        message: User-facing message, returned as ``{"error": message}``.
        status_code: HTTP status code for the response.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BloomworksError):
    """The submitted message is missing or empty after normalisation."""

    status_code = 400


class CapacityError(BloomworksError):
    """A global or per-identity record ceiling has been reached.

    Attributes:
        scope: ``"global"`` or ``"identity"``.
    """

    status_code = 403

    def __init__(self, message: str, scope: str = "global") -> None:
        super().__init__(message)
        self.scope = scope


class SafetyBlockedError(BloomworksError):
    """Both the primary and the fallback image request were rejected."""

    status_code = 400


class UnknownThemeError(BloomworksError):
    """No theme is registered under the requested name."""

    status_code = 404


class UpstreamServiceError(BloomworksError):
    """An external service failed for a reason unrelated to safety.

    Attributes:
        service: Short name of the failing collaborator (``"storage"``,
            ``"database"``, ``"images"``...).
    """

    status_code = 500

    def __init__(self, message: str, service: str = "upstream") -> None:
        super().__init__(message)
        self.service = service


class ImageGenerationError(UpstreamServiceError):
    """The image service failed with a non-safety error.  Never retried."""

    def __init__(self, message: str = "Image generation error") -> None:
        super().__init__(message, service="images")


class ImageServiceError(Exception):
    """Raised by the image client for any failed generation request.

    Attributes:
        status: HTTP status reported by the service, if any.
        code: Service error code, if any.
    """

    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class ImageSafetyRejection(ImageServiceError):
    """The image service refused the prompt on safety/moderation grounds."""


class PublishWarning(UserWarning):
    """A best-effort CMS push failed.  Logged, never surfaced to the caller."""
