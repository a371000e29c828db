"""RustMaps v4 REST client: lookups, generation requests and image downloads."""
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mapcache.core.action_logging import null_log_action
from mapcache.core.config import DEFAULT_API_BASE_URL, DEFAULT_REQUEST_TIMEOUT_SECONDS
from mapcache.core.errors import (
    Cancelled,
    ImageFetchError,
    InvalidParameters,
    MissingCredential,
    ProviderError,
    RateLimited,
    Unauthorized,
)
from mapcache.core.map_models import (
    EXISTS,
    GENERATING,
    NOT_FOUND,
    PENDING,
    QUEUED,
    READY,
    DownloadedImage,
    Outcome,
    extract_job_id,
    parse_provider_payload,
)


def build_session(retries=2, pool_size=4):
    """Return a session that retries connection failures and gateway errors on GET."""
    session = requests.Session()
    retry = Retry(
        total=retries,
        connect=retries,
        read=0,
        backoff_factor=0.3,
        status_forcelist=(502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def parse_json_safe(response):
    """Return the JSON body, or ``None`` when it is absent or not JSON."""
    content_type = (response.headers.get("content-type") or "").lower()
    if "application/json" not in content_type:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def image_extension_for(mime):
    """Map a response MIME type to the file extension images are stored under."""
    mime = (mime or "").lower()
    if "png" in mime:
        return "png"
    if "webp" in mime:
        return "webp"
    return "jpg"


def _raise_for_common_status(status):
    if status in (401, 403):
        raise Unauthorized(status=status)
    if status == 429:
        raise RateLimited(status=status)


class RustMapsClient:
    """Thin RustMaps API wrapper translating HTTP statuses into ``Outcome`` values."""

    def __init__(
        self,
        api_key="",
        base_url=DEFAULT_API_BASE_URL,
        session=None,
        request_timeout=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        log_action=None,
    ):
        self.api_key = (api_key or "").strip()
        self.base_url = (base_url or DEFAULT_API_BASE_URL).rstrip("/")
        self.session = session or build_session()
        self.request_timeout = request_timeout
        self.log_action = log_action or null_log_action

    def set_api_key(self, api_key):
        self.api_key = (api_key or "").strip()

    def require_credential(self):
        if not self.api_key:
            raise MissingCredential()

    def close(self):
        self.session.close()

    def _headers(self):
        return {"x-api-key": self.api_key, "accept": "application/json"}

    def _request(self, method, path, *, params=None, body=None, cancel=None):
        self.require_credential()
        if cancel is not None:
            cancel.raise_if_cancelled()
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=body,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            if cancel is not None:
                cancel.raise_if_cancelled()
            raise ProviderError(f"{method} {path} failed: {exc}") from exc
        if cancel is not None:
            cancel.raise_if_cancelled()
        return response, parse_json_safe(response)

    def _lookup_outcome(self, response, payload):
        status = response.status_code
        _raise_for_common_status(status)
        if status == 404:
            return Outcome(NOT_FOUND)
        if status == 409:
            return Outcome(GENERATING, job_id=extract_job_id(payload))
        if status != 200:
            raise ProviderError(status=status)
        metadata = parse_provider_payload(payload)
        if metadata is None:
            raise ProviderError("unreadable map metadata", status=status)
        return Outcome(READY, metadata=metadata, job_id=extract_job_id(payload))

    def lookup_by_size_seed(self, size, seed, staging=False, cancel=None):
        """``GET /maps/{size}/{seed}``."""
        path = f"/maps/{quote(str(size), safe='')}/{quote(str(seed), safe='')}"
        params = {"staging": "true" if staging else "false"}
        response, payload = self._request("GET", path, params=params, cancel=cancel)
        return self._lookup_outcome(response, payload)

    def lookup_by_id(self, job_id, cancel=None):
        """``GET /maps/{id}``; an empty id is reported as not found without a call."""
        self.require_credential()
        if not job_id:
            return Outcome(NOT_FOUND)
        response, payload = self._request("GET", f"/maps/{quote(str(job_id), safe='')}", cancel=cancel)
        return self._lookup_outcome(response, payload)

    def request_generation(self, size, seed, staging=False, cancel=None):
        """``POST /maps`` asking the provider to generate a world."""
        body = {"size": int(size), "seed": int(seed), "staging": bool(staging)}
        response, payload = self._request("POST", "/maps", body=body, cancel=cancel)
        status = response.status_code
        _raise_for_common_status(status)
        if status == 400:
            raise InvalidParameters("RustMaps rejected the generation request", status=status)
        if status == 200:
            return Outcome(EXISTS, metadata=parse_provider_payload(payload))
        if status == 201:
            return Outcome(QUEUED, job_id=extract_job_id(payload))
        if status == 409:
            return Outcome(PENDING, job_id=extract_job_id(payload))
        raise ProviderError(status=status)

    def download_image(self, metadata, cancel=None):
        """Fetch the first reachable candidate image for ``metadata``."""
        self.require_credential()
        urls = metadata.image_candidates() if metadata is not None else []
        if not urls:
            raise ImageFetchError("map metadata has no image URLs")
        last_error = None
        attempted = []
        for url in urls:
            if cancel is not None:
                cancel.raise_if_cancelled()
            attempted.append(url)
            try:
                response = self.session.get(url, headers={"x-api-key": self.api_key}, timeout=self.request_timeout)
            except requests.RequestException as exc:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                last_error = exc
                self.log_action("image-fetch", command=url, rejection_message=str(exc), level="warning")
                continue
            if cancel is not None and cancel.cancelled:
                raise Cancelled(cancel.reason or None)
            status = response.status_code
            if not 200 <= status < 300 or not response.content:
                last_error = ImageFetchError(f"image request returned {status}", status=status)
                self.log_action("image-fetch", command=url, rejection_message=f"status={status}", level="warning")
                continue
            mime = (response.headers.get("content-type") or "").split(";")[0].strip().lower()
            return DownloadedImage(
                content=response.content,
                extension=image_extension_for(mime),
                mime=mime or "image/jpeg",
                source_url=url,
            )
        raise ImageFetchError(
            f"all {len(attempted)} image URLs failed",
            status=getattr(last_error, "status", None),
            last_error=last_error,
            attempted_urls=attempted,
        )
