"""Transformation of raw Launch Library 2 launches into LaunchRecord objects"""
from typing import Any, Dict, Iterable, List, Tuple

from ..storage.models import LaunchRecord, VideoUrl
from ..utils.timezone import parse_timestamp

PAYLOAD_UNKNOWN = "payload unknown"
MISSION_TYPE_UNKNOWN = "mission type unknown"
MISSION_DESCRIPTION_UNKNOWN = "mission description unknown"


class LaunchTransformError(ValueError):
    """A raw launch is missing data every LaunchRecord needs"""


def transform(raw: Dict[str, Any], seq_id: int = 0) -> LaunchRecord:
    """
    Build a LaunchRecord from a raw provider launch

    An absent mission falls back to fixed "unknown" strings instead of
    failing. Video links are ordered by ascending priority and only the
    first link per title is kept.

    Args:
        raw: One entry of the provider's launch list
        seq_id: Internal sequence id for the record

    Returns:
        LaunchRecord built from the raw data

    Raises:
        LaunchTransformError: If a mandatory field is missing or invalid
    """
    try:
        mission = raw.get("mission") or None
        window_start = parse_timestamp(raw["window_start"])
        window_end = parse_timestamp(raw["window_end"])

        return LaunchRecord(
            id=seq_id,
            ll_id=str(raw["id"]),
            name=raw["name"],
            status=int(raw["status"]["id"]),
            payload=mission["name"] if mission else PAYLOAD_UNKNOWN,
            vehicle=raw["rocket"]["configuration"]["full_name"],
            location=raw["pad"]["name"],
            net=parse_timestamp(raw["net"]),
            launch_window=window_end - window_start,
            mission_type=mission["type"] if mission else MISSION_TYPE_UNKNOWN,
            mission_description=(
                mission["description"] if mission else MISSION_DESCRIPTION_UNKNOWN
            ),
            lsp=raw["launch_service_provider"]["name"],
            vid_urls=dedup_video_urls(
                VideoUrl(
                    priority=int(v.get("priority", 0)),
                    title=v.get("title") or "",
                    url=v["url"],
                )
                for v in raw.get("vidURLs") or ()
            ),
            rocket_img=raw.get("image"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise LaunchTransformError(
            f"Cannot transform launch {raw.get('id', '<no id>')}: {e!r}"
        ) from e


def dedup_video_urls(urls: Iterable[VideoUrl]) -> Tuple[VideoUrl, ...]:
    """Sort links by ascending priority and keep the first one per title"""
    seen = set()
    unique: List[VideoUrl] = []
    for url in sorted(urls, key=lambda u: u.priority):
        if url.title in seen:
            continue
        seen.add(url.title)
        unique.append(url)
    return tuple(unique)
