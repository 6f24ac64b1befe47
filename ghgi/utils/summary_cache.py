from __future__ import annotations

import json
import logging

import redis

from ghgi.core.config import settings
from ghgi.core.redis import get_redis

logger = logging.getLogger("ghgi.analytics")


def _key(form_type_id: int, year: int) -> str:
    return f"form_summary:{int(form_type_id)}:{int(year)}"


def get_cached_summary(form_type_id: int, year: int) -> dict | None:
    if settings.SUMMARY_CACHE_SECONDS <= 0:
        return None
    r = get_redis()
    if r is None:
        return None
    try:
        v = r.get(_key(form_type_id, year))
    except redis.RedisError as exc:
        logger.warning("summary cache read failed: %s", exc)
        return None
    return json.loads(v) if v else None


def set_cached_summary(form_type_id: int, year: int, summary: dict) -> None:
    if settings.SUMMARY_CACHE_SECONDS <= 0:
        return
    r = get_redis()
    if r is None:
        return
    try:
        r.setex(_key(form_type_id, year), settings.SUMMARY_CACHE_SECONDS, json.dumps(summary, default=str))
    except redis.RedisError as exc:
        logger.warning("summary cache write failed: %s", exc)


def invalidate_summary(form_type_id: int, year: int) -> None:
    r = get_redis()
    if r is None:
        return
    try:
        r.delete(_key(form_type_id, year))
    except redis.RedisError as exc:
        logger.warning("summary cache invalidation failed: %s", exc)
