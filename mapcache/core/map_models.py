"""Map world/metadata records and the provider payload parse step."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional

from mapcache.core.errors import InvalidParameters

READY = "ready"
NOT_FOUND = "not_found"
GENERATING = "generating"
QUEUED = "queued"
PENDING = "pending"
EXISTS = "exists"

IMAGE_URL_FIELDS = ("download_url", "image_url", "raw_image_url", "thumbnail_url")

# Persisted/provider camelCase key -> dataclass attribute.
_RECORD_FIELDS = (
    ("id", "map_id"),
    ("type", "map_type"),
    ("seed", "seed"),
    ("size", "size"),
    ("saveVersion", "save_version"),
    ("mapName", "map_name"),
    ("url", "url"),
    ("downloadUrl", "download_url"),
    ("imageUrl", "image_url"),
    ("rawImageUrl", "raw_image_url"),
    ("imageIconUrl", "image_icon_url"),
    ("thumbnailUrl", "thumbnail_url"),
    ("isCustomMap", "is_custom_map"),
    ("canDownload", "can_download"),
    ("totalMonuments", "total_monuments"),
    ("biomePercentages", "biome_percentages"),
    ("mapKey", "map_key"),
)


def _coerce_int(value):
    """Return ``value`` as an int when it is integral, else ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        if math.isfinite(parsed) and parsed.is_integer():
            return int(parsed)
    return None


def _clean_str(value):
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _clean_bool(value):
    return value if isinstance(value, bool) else None


def parse_timestamp(value):
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value):
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class WorldIdentifier:
    """Procedural world: size, seed and the provider's staging flag."""
    size: int
    seed: int
    staging: bool = False


def validate_world(size, seed, staging=False):
    """Return a ``WorldIdentifier`` or raise ``InvalidParameters``."""
    parsed_size = _coerce_int(size)
    parsed_seed = _coerce_int(seed)
    if parsed_size is None or parsed_seed is None:
        raise InvalidParameters(f"size and seed must be integers (size={size!r}, seed={seed!r})")
    if parsed_size <= 0:
        raise InvalidParameters(f"size must be positive (size={size!r})")
    return WorldIdentifier(size=parsed_size, seed=parsed_seed, staging=bool(staging))


def derive_map_key(size, seed, save_version=None):
    """Build the raw cache label ``<seed>_<size>[_v<saveVersion>]``."""
    key = f"{seed}_{size}"
    if save_version:
        key = f"{key}_v{save_version}"
    return key


@dataclass
class CachedMapMetadata:
    """Normalized provider metadata for one generated world."""
    map_id: Optional[str] = None
    map_type: Optional[str] = None
    seed: Optional[int] = None
    size: Optional[int] = None
    save_version: Optional[int] = None
    map_name: Optional[str] = None
    url: Optional[str] = None
    download_url: Optional[str] = None
    image_url: Optional[str] = None
    raw_image_url: Optional[str] = None
    image_icon_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    is_custom_map: bool = False
    can_download: Optional[bool] = None
    total_monuments: Optional[int] = None
    biome_percentages: Optional[dict] = None
    map_key: Optional[str] = None
    cached_at: Optional[datetime] = None

    def image_candidates(self):
        """Return non-empty, de-duplicated image URLs in download priority order."""
        urls = []
        for name in IMAGE_URL_FIELDS:
            value = _clean_str(getattr(self, name))
            if value and value not in urls:
                urls.append(value)
        return urls

    def has_image_candidate(self):
        return bool(self.image_candidates())

    def with_cache_stamp(self, map_key, cached_at):
        """Return a copy carrying ``map_key`` and ``cached_at``."""
        return replace(self, map_key=map_key, cached_at=cached_at)

    def to_record(self):
        record = {key: getattr(self, attr) for key, attr in _RECORD_FIELDS}
        record["cachedAt"] = format_timestamp(self.cached_at)
        return record

    @classmethod
    def from_record(cls, record):
        """Rebuild metadata from a persisted JSON record."""
        if not isinstance(record, dict):
            return None
        meta = _parse_fields(record)
        meta.map_key = _clean_str(record.get("mapKey"))
        meta.cached_at = parse_timestamp(record.get("cachedAt"))
        return meta


def _parse_fields(data):
    biomes = data.get("biomePercentages")
    map_id = data.get("id")
    return CachedMapMetadata(
        map_id=str(map_id) if isinstance(map_id, (str, int)) and not isinstance(map_id, bool) and str(map_id) else None,
        map_type=_clean_str(data.get("type")),
        seed=_coerce_int(data.get("seed")),
        size=_coerce_int(data.get("size")),
        save_version=_coerce_int(data.get("saveVersion")),
        map_name=_clean_str(data.get("mapName")) or _clean_str(data.get("map")),
        url=_clean_str(data.get("url")),
        download_url=_clean_str(data.get("downloadUrl")),
        image_url=(
            _clean_str(data.get("imageUrl"))
            or _clean_str(data.get("rawImageUrl"))
            or _clean_str(data.get("downloadUrl"))
        ),
        raw_image_url=_clean_str(data.get("rawImageUrl")),
        image_icon_url=_clean_str(data.get("imageIconUrl")),
        thumbnail_url=_clean_str(data.get("thumbnailUrl")) or _clean_str(data.get("imageIconUrl")),
        is_custom_map=data.get("isCustomMap") is True,
        can_download=_clean_bool(data.get("canDownload")),
        total_monuments=_coerce_int(data.get("totalMonuments")),
        biome_percentages=dict(biomes) if isinstance(biomes, dict) else None,
    )


def parse_provider_payload(payload):
    """Normalize a provider response body into metadata, or ``None`` when unusable."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        return None
    meta = _parse_fields(payload)
    if not (meta.map_id or meta.seed is not None or meta.size is not None or meta.image_candidates()):
        return None
    return meta


def extract_job_id(payload):
    """Pull the provider job/map id out of the loose response shapes it uses."""
    if not payload:
        return None
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list):
        return extract_job_id(payload[0])
    if not isinstance(payload, dict):
        return None
    for name in ("mapId", "id"):
        value = payload.get(name)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return str(value)
    data = payload.get("data")
    if isinstance(data, str) and data:
        return data
    if isinstance(data, (dict, list)):
        return extract_job_id(data)
    return None


@dataclass(frozen=True)
class Outcome:
    """Result of one provider call; only used inside the generation loop."""
    kind: str
    metadata: Optional[CachedMapMetadata] = None
    job_id: Optional[str] = None


@dataclass(frozen=True)
class DownloadedImage:
    content: bytes
    extension: str
    mime: str
    source_url: str


@dataclass
class MapCacheResult:
    """What the persistence wrapper hands back to route handlers."""
    metadata: CachedMapMetadata
    image_path: Any = None
    cached: bool = False
