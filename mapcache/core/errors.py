"""Typed failures raised by the RustMaps resolution and cache layer."""


class RustMapsError(RuntimeError):
    """Base failure carrying a stable ``code`` and optional HTTP ``status``."""

    code = "rustmaps_error"

    def __init__(self, message=None, status=None):
        super().__init__(message or self.code)
        self.status = status


class MissingCredential(RustMapsError):
    code = "rustmaps_api_key_missing"


class InvalidParameters(RustMapsError):
    code = "rustmaps_invalid_parameters"


class Unauthorized(RustMapsError):
    code = "rustmaps_unauthorized"


class NotFound(RustMapsError):
    code = "rustmaps_not_found"


class GenerationPending(RustMapsError):
    code = "rustmaps_generation_pending"

    def __init__(self, message=None, status=None, job_id=None):
        super().__init__(message, status)
        self.job_id = job_id


class GenerationTimeout(RustMapsError):
    code = "rustmaps_generation_timeout"


class ProviderError(RustMapsError):
    code = "rustmaps_error"


class RateLimited(ProviderError):
    code = "rustmaps_rate_limited"


class ImageFetchError(RustMapsError):
    """Every candidate image URL failed; ``last_error`` holds the final cause."""

    code = "rustmaps_image_error"

    def __init__(self, message=None, status=None, last_error=None, attempted_urls=None):
        super().__init__(message, status)
        self.last_error = last_error
        self.attempted_urls = list(attempted_urls or [])


class Cancelled(RustMapsError):
    code = "rustmaps_aborted"


_CONFIGURATION_ERRORS = (MissingCredential, InvalidParameters, Unauthorized)
_TRANSIENT_ERRORS = (GenerationTimeout, ProviderError, ImageFetchError)


def is_configuration_error(exc):
    """Return True when the failure needs an operator to fix settings."""
    return isinstance(exc, _CONFIGURATION_ERRORS)


def is_transient_error(exc):
    """Return True when retrying later may succeed."""
    return isinstance(exc, _TRANSIENT_ERRORS)
