from supabase import Client
from typing import Dict, Iterable, List, Optional
import threading
import logging

from app.database.supabase_client import Tables
from app.modules.circles.schemas import TagConfig

logger = logging.getLogger(__name__)


class TagConfigCache:
    """
    Process-lifetime, read-only cache of circle_tag_config.

    Loaded lazily on first use and never invalidated, so tag edits become
    visible after the next process start. Staleness is bounded by process
    lifetime; tags are near-static reference data.
    """

    _tags: Optional[Dict[str, TagConfig]] = None
    _lock = threading.Lock()

    @classmethod
    def get_tags(cls, supabase: Client) -> Dict[str, TagConfig]:
        if cls._tags is None:
            with cls._lock:
                if cls._tags is None:
                    result = supabase.table(Tables.TAG_CONFIG).select("*").execute()
                    cls._tags = {row["tag_key"]: TagConfig(**row) for row in (result.data or [])}
                    logger.info(f"Loaded {len(cls._tags)} tag configs")
        return cls._tags

    @classmethod
    def reset(cls):
        with cls._lock:
            cls._tags = None


class TagService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def all_tags(self) -> Dict[str, TagConfig]:
        return TagConfigCache.get_tags(self.supabase)

    def active_tags(self) -> List[TagConfig]:
        tags = [t for t in self.all_tags().values() if t.active]
        return sorted(tags, key=lambda t: (t.category, t.display_label))

    def known_tag_keys(self, requested: Iterable[str]) -> List[str]:
        """Keep requested keys that exist and are active, in request order, dropping the rest silently."""
        tags = self.all_tags()
        kept = []
        for key in requested or []:
            tag = tags.get(key)
            if tag and tag.active and key not in kept:
                kept.append(key)
        return kept

    def resolve(self, keys: Iterable[str]) -> List[TagConfig]:
        tags = self.all_tags()
        return [tags[k] for k in keys or [] if k in tags]
