"""Geospatial bucketing - coordinate to geohash cell ids and back.

A bucket id is ``gh<precision>:<geohash>`` for precisions 2-5, or the
sentinel ``global`` for the whole world. Each precision step shrinks the
cell roughly by half in each linear dimension (5 bits per character,
alternating longitude/latitude).
"""

import math
import re
from typing import NamedTuple

import pygeohash

GLOBAL_BUCKET = "global"
DEFAULT_PRECISION = 5
MIN_PRECISION = 2

_BUCKET_RE = re.compile(r"^gh([2-5]):([0123456789bcdefghjkmnpqrstuvwxyz]+)$")


class ApproxCoords(NamedTuple):
    latitude: float
    longitude: float


def to_bucket_id(lat: float, lng: float, precision: int = DEFAULT_PRECISION) -> str:
    """Encode a coordinate pair into a bucket id at ``precision``."""
    if not MIN_PRECISION <= precision <= DEFAULT_PRECISION:
        raise ValueError(
            f"precision must be between {MIN_PRECISION} and {DEFAULT_PRECISION}, got {precision}"
        )
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValueError("coordinates must be finite numbers")
    code = pygeohash.encode(lat, lng, precision=precision)
    return f"gh{precision}:{code}"


def bucket_fallback_chain(lat: float, lng: float) -> list[str]:
    """Return bucket ids from finest to coarsest, ending in the sentinel."""
    chain = [
        to_bucket_id(lat, lng, precision)
        for precision in range(DEFAULT_PRECISION, MIN_PRECISION - 1, -1)
    ]
    chain.append(GLOBAL_BUCKET)
    return chain


def bucket_precision(bucket_id: str) -> int | None:
    """Precision encoded in a bucket id, or None for the sentinel/malformed ids."""
    match = _BUCKET_RE.match(bucket_id or "")
    return int(match.group(1)) if match else None


def bucket_id_to_approx_coords(bucket_id: str) -> ApproxCoords | None:
    """Decode a bucket id to the centre of its cell.

    Returns None for the sentinel and for anything not shaped like
    ``gh<2-5>:<geohash>``. Never raises.
    """
    if not isinstance(bucket_id, str):
        return None
    match = _BUCKET_RE.match(bucket_id)
    if not match:
        return None
    try:
        latitude, longitude, _lat_err, _lng_err = pygeohash.decode_exactly(match.group(2))
    except (ValueError, KeyError, TypeError):
        return None
    return ApproxCoords(latitude=float(latitude), longitude=float(longitude))
