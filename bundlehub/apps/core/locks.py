from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

from django.core.cache import cache

logger = logging.getLogger(__name__)


@contextmanager
def single_run(name: str, ttl: int = 600) -> Iterator[bool]:
    """Yield ``True`` when no other run holds ``name``.

    The flag lives in the shared cache so overlapping Celery workers see it;
    ``ttl`` bounds how long a crashed run can block the next one.
    """
    key = f'run-lock:{name}'
    token = uuid.uuid4().hex
    acquired = cache.add(key, token, timeout=ttl)
    if not acquired:
        logger.info('Run lock busy', extra={'lock': name})
    try:
        yield acquired
    finally:
        if acquired and cache.get(key) == token:
            cache.delete(key)
