"""Flask JSON responses for map resolution failures."""

from flask import jsonify

from mapcache.core.errors import (
    Cancelled,
    GenerationPending,
    GenerationTimeout,
    ImageFetchError,
    NotFound,
    RustMapsError,
    is_configuration_error,
)

_ERROR_MESSAGES = {
    "rustmaps_api_key_missing": "A RustMaps API key is required. Add one in settings.",
    "rustmaps_invalid_parameters": "Map size and seed must be whole numbers.",
    "rustmaps_unauthorized": "RustMaps rejected the API key.",
    "rustmaps_not_found": "RustMaps has no data for this map yet.",
    "rustmaps_generation_pending": "RustMaps is still generating this map.",
    "rustmaps_generation_timeout": "RustMaps did not finish generating the map in time.",
    "rustmaps_rate_limited": "RustMaps is rate limiting requests. Try again shortly.",
    "rustmaps_image_error": "Map imagery could not be downloaded.",
    "rustmaps_aborted": "Map request was cancelled.",
    "rustmaps_error": "RustMaps request failed.",
}


def map_error_status(exc):
    """Return the HTTP status route handlers use for ``exc``."""
    if is_configuration_error(exc):
        return 400
    if isinstance(exc, GenerationPending):
        return 202
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, GenerationTimeout):
        return 504
    if isinstance(exc, Cancelled):
        return 499
    return 502


def map_error_response(exc):
    """Return ``(json, status)`` for a failed map request."""
    code = exc.code if isinstance(exc, RustMapsError) else "rustmaps_error"
    payload = {
        "ok": False,
        "error": code,
        "message": _ERROR_MESSAGES.get(code, _ERROR_MESSAGES["rustmaps_error"]),
    }
    if isinstance(exc, GenerationPending) and exc.job_id:
        payload["jobId"] = exc.job_id
    if isinstance(exc, ImageFetchError) and exc.attempted_urls:
        payload["attempted"] = len(exc.attempted_urls)
    return jsonify(payload), map_error_status(exc)
