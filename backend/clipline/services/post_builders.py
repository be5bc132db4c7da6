"""Postiz request payloads."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from clipline.integrations.postiz import UploadedMedia
from clipline.models import WorkItem


def platform_key(identifier: str | None) -> str:
    """Normalise a provider identifier (``instagram-standalone`` -> ``instagram``)."""
    ident = (identifier or "").strip().lower()
    for known in ("youtube", "tiktok", "instagram"):
        if ident.startswith(known):
            return known
    return ident


def make_settings(platform: str, title: str) -> dict[str, Any]:
    key = platform_key(platform)
    if key == "youtube":
        return {
            "__type": "youtube",
            "title": title,
            "type": "public",
            "selfDeclaredMadeForKids": "no",
        }
    if key == "tiktok":
        return {
            "__type": "tiktok",
            "title": title,
            "privacy_level": "PUBLIC_TO_EVERYONE",
            "duet": True,
            "stitch": True,
            "comment": True,
            "autoAddMusic": "no",
            "brand_content_toggle": False,
            "brand_organic_toggle": False,
            "video_made_with_ai": False,
            "content_posting_method": "DIRECT_POST",
        }
    if key == "instagram":
        return {"__type": "instagram", "post_type": "post", "collaborators": []}
    return {"__type": key} if key else {}


def post_content(item: WorkItem) -> str:
    if item.title:
        return item.title
    if item.series_index is not None and item.series_count is not None:
        return f"Part {item.series_index}/{item.series_count}"
    return f"Clip {item.id}"


def build_post_item(
    integration_id: str,
    content: str,
    uploads: Iterable[UploadedMedia],
    settings: dict[str, Any],
) -> dict[str, Any]:
    return {
        "integration": {"id": integration_id},
        "value": [
            {
                "content": content,
                "image": [{"id": u.id, "path": u.path} for u in uploads],
            }
        ],
        "settings": settings,
    }


def format_provider_date(when: datetime) -> str:
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_schedule_body(when: datetime, posts: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "schedule",
        "date": format_provider_date(when),
        "shortLink": False,
        "tags": [],
        "posts": posts,
    }
