"""
Article storage over a key-value store.

Articles live in two places:
- the full record, stored under the article's identifier
- a summary entry in the index list (SYSTEM_INDEX_LIST), sorted by
  createDate descending, used for listings without fetching full records

ArticleStore keeps the two in step. Writes touch the full record first and
the index second; the pair is not atomic, so a failure in between can leave
a record missing from the index or an index entry without a record. The
latter is detected on read and can be repaired with repair_missing().
Concurrent writers race on the index key and the last one wins.
"""
import logging
import re
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from kvblog.cache import TTLCache
from kvblog.exceptions import NotFoundError, ValidationError
from kvblog.file_utils import get_utc_timestamp
from kvblog.identifier_allocator import IdentifierAllocator, format_identifier
from kvblog.kv_accessor import KeyValueAccessor
from kvblog.markdown_stripper import make_excerpt
from kvblog.slug import ensure_unique, slugify

logger = logging.getLogger(__name__)

INDEX_KEY = "SYSTEM_INDEX_LIST"

STATUS_PUBLISHED = "published"
STATUS_DRAFT = "draft"
STATUSES = (STATUS_PUBLISHED, STATUS_DRAFT)
STATUS_ALL = "all"

INDEX_FIELDS = ("id", "title", "img", "permalink", "createDate", "label", "excerpt", "status")

EDITABLE_FIELDS = (
    "title", "permalink", "label", "img", "createDate", "content", "contentMarkdown", "status",
)

LOSS_NOTICE = (
    "The content of this article was lost. It has been restored as a draft "
    "from the article index; please rewrite or delete it."
)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

_IDENTIFIER = re.compile(r"^\d{6,}$")


def parse_create_date(value: Any) -> datetime:
    """
    Parse an ISO-8601 createDate for sorting.

    Naive values are taken as UTC; missing or invalid values sort last.
    """
    if not isinstance(value, str) or not value:
        return _OLDEST
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_index(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort index entries by createDate, newest first; ties keep their order."""
    return sorted(entries, key=lambda e: parse_create_date(e.get("createDate")), reverse=True)


def make_index_entry(article: Dict[str, Any]) -> Dict[str, Any]:
    """Project a full record onto the index entry fields."""
    return {field: article.get(field) for field in INDEX_FIELDS}


def merge_article_update(existing: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply caller-supplied editable fields onto a loaded article.

    Only fields present in updates are changed, and the identifier is always
    the existing one. Updating content without contentMarkdown updates both,
    so the excerpt follows the new text.
    """
    merged = dict(existing)
    for field in EDITABLE_FIELDS:
        if field in updates:
            merged[field] = updates[field]
    if "content" in updates and "contentMarkdown" not in updates:
        merged["contentMarkdown"] = updates["content"]
    merged["id"] = existing["id"]
    return merged


def _is_published(entry: Dict[str, Any]) -> bool:
    return entry.get("status") != STATUS_DRAFT


def normalize_identifier(value: Any) -> str:
    """
    Validate a caller-supplied article identifier.

    Integers are zero-padded; strings must already be zero-padded digits.

    Raises:
        ValidationError: If value cannot be an article identifier
    """
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return format_identifier(value)
    if isinstance(value, str) and _IDENTIFIER.match(value):
        return value
    raise ValidationError(f"Invalid article id: {value!r}")


class ArticleStore:
    """Owns the consistency between full article records and the index list."""

    def __init__(
        self,
        accessor: KeyValueAccessor,
        allocator: Optional[IdentifierAllocator] = None,
        page_size: int = 10,
        read_more_length: int = 150,
        cache_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the article store.

        Args:
            accessor: JSON accessor over the key-value store
            allocator: Identifier source (defaults to one over the same accessor)
            page_size: Default page size for list_paginated
            read_more_length: Excerpt length in characters
            cache_ttl: Seconds the index and records stay cached
            clock: Time source for the caches
        """
        self.accessor = accessor
        self.allocator = allocator or IdentifierAllocator(accessor)
        self.page_size = page_size
        self.read_more_length = read_more_length
        self._index_cache = TTLCache(cache_ttl, clock=clock)
        self._article_cache = TTLCache(cache_ttl, clock=clock)

    # ================== INDEX ==================

    def _load_index(self) -> List[Dict[str, Any]]:
        """Read the index straight from the store, defaulting missing statuses."""
        raw = self.accessor.get_json(INDEX_KEY)
        if not isinstance(raw, list):
            if raw is not None:
                logger.error("%s is not a list, treating index as empty", INDEX_KEY)
            return []
        entries = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            entry = dict(item)
            # entries written before drafts existed carry no status
            entry["status"] = entry.get("status") or STATUS_PUBLISHED
            entries.append(entry)
        return entries

    def _write_index(self, entries: List[Dict[str, Any]]) -> None:
        self.accessor.put_json(INDEX_KEY, sort_index(entries))
        self._index_cache.invalidate(INDEX_KEY)

    def clear_cache(self) -> None:
        """Drop every cached index and record."""
        self._index_cache.clear()
        self._article_cache.clear()

    def list_all(self) -> List[Dict[str, Any]]:
        """Return every index entry, newest first."""
        cached = self._index_cache.get(INDEX_KEY)
        if cached is None:
            cached = self._load_index()
            self._index_cache.put(INDEX_KEY, cached)
        return [dict(e) for e in cached]

    def list_published(self) -> List[Dict[str, Any]]:
        """Return index entries that are not drafts."""
        return [e for e in self.list_all() if _is_published(e)]

    def list_drafts(self) -> List[Dict[str, Any]]:
        """Return draft index entries."""
        return [e for e in self.list_all() if not _is_published(e)]

    def list_paginated(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        status_filter: str = STATUS_PUBLISHED
    ) -> Dict[str, Any]:
        """
        Return one page of index entries.

        Args:
            page: 1-based page number; clamped into [1, max(1, totalPages)]
            page_size: Entries per page; non-positive or None uses the default
            status_filter: 'published', 'draft' or 'all'

        Returns:
            Dict with 'articles' and a 'pagination' block
        """
        if status_filter == STATUS_PUBLISHED:
            entries = self.list_published()
        elif status_filter == STATUS_DRAFT:
            entries = self.list_drafts()
        else:
            entries = self.list_all()

        if not page_size or page_size <= 0:
            page_size = self.page_size
        if not page or page <= 0:
            page = 1

        total = len(entries)
        total_pages = -(-total // page_size)
        page = min(page, max(1, total_pages))
        start = (page - 1) * page_size

        return {
            "articles": entries[start:start + page_size],
            "pagination": {
                "page": page,
                "pageSize": page_size,
                "totalArticles": total,
                "totalPages": total_pages,
                "hasNextPage": page < total_pages,
                "hasPrevPage": page > 1,
            },
        }

    def categories(self) -> Dict[str, int]:
        """Count published articles per label; unlabeled articles are skipped."""
        counts = Counter(e["label"] for e in self.list_published() if e.get("label"))
        return dict(counts)

    # ================== RECORDS ==================

    def get(self, article_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a full article record.

        Returns:
            Article dict, or None if no record exists under article_id
        """
        cached = self._article_cache.get(article_id)
        if cached is None:
            cached = self.accessor.get_json(article_id)
            if not isinstance(cached, dict):
                return None
            self._article_cache.put(article_id, cached)
        return dict(cached)

    def get_by_permalink(self, permalink: str, include_drafts: bool = True) -> Optional[Dict[str, Any]]:
        """
        Get a full article by its permalink.

        The index status overrides the status stored in the record, since the
        index is what listings filter on.

        Args:
            permalink: Article permalink
            include_drafts: When False, drafts are reported as not found

        Returns:
            Article dict, or None if unknown, hidden, or its record is missing
        """
        entry = next((e for e in self.list_all() if e.get("permalink") == permalink), None)
        if entry is None:
            return None

        article = self.get(entry["id"])
        if article is None:
            logger.warning("Index entry %s has no full record", entry["id"])
            return None

        article["status"] = entry["status"]
        if not include_drafts and article["status"] == STATUS_DRAFT:
            return None
        return article

    def save(self, article: Dict[str, Any]) -> str:
        """
        Create or update an article.

        Assigns an identifier when missing (a supplied one must be zero-padded
        digits and moves the counter past it), derives a unique permalink,
        recomputes the excerpt, writes the full record and then the index.

        Args:
            article: Article fields; 'id' present means update

        Returns:
            The article identifier

        Raises:
            ValidationError: If the payload is unusable
            StoreError: If a write fails
        """
        if not isinstance(article, dict):
            raise ValidationError("Article payload must be a JSON object")
        record = dict(article)

        status = record.get("status") or STATUS_PUBLISHED
        if status not in STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        permalink = record.get("permalink") or slugify(record.get("title"))
        if not permalink:
            raise ValidationError("Article requires a title or permalink")

        index = self._load_index()
        if record.get("id"):
            article_id = normalize_identifier(record["id"])
            self.allocator.observe(article_id)
        else:
            article_id = self.allocator.allocate()

        record["id"] = article_id
        record["permalink"] = ensure_unique(
            permalink,
            ((e["id"], e.get("permalink")) for e in index),
            exclude_id=article_id,
        )
        record["status"] = status
        record["img"] = record.get("img") or ""
        record["createDate"] = record.get("createDate") or get_utc_timestamp()
        record["contentMarkdown"] = record.get("contentMarkdown") or record.get("content") or ""
        record["excerpt"] = make_excerpt(record["contentMarkdown"], self.read_more_length)

        self.accessor.put_json(article_id, record)
        self._article_cache.invalidate(article_id)

        entry = make_index_entry(record)
        for i, existing in enumerate(index):
            if existing["id"] == article_id:
                index[i] = entry
                break
        else:
            index.insert(0, entry)
        self._write_index(index)

        logger.info("Saved article %s (%s)", article_id, record["permalink"])
        return article_id

    def delete(self, article_id: str) -> bool:
        """
        Delete an article's full record and its index entry.

        Returns:
            True if either the record or the index entry existed

        Raises:
            StoreError: If a write fails
        """
        record_existed = self.accessor.delete(article_id)
        self._article_cache.invalidate(article_id)

        index = self._load_index()
        remaining = [e for e in index if e["id"] != article_id]
        if len(remaining) != len(index):
            self._write_index(remaining)

        logger.info("Deleted article %s", article_id)
        return record_existed or len(remaining) != len(index)

    # ================== BULK ==================

    def export_all(self) -> List[Dict[str, Any]]:
        """
        Fetch every indexed full record, in index order.

        Entries whose record is missing are left out.
        """
        ids = [e["id"] for e in self.list_all()]
        found = {}
        uncached = []
        for article_id in ids:
            cached = self._article_cache.get(article_id)
            if cached is None:
                uncached.append(article_id)
            else:
                found[article_id] = cached

        for article_id, article in self.accessor.get_many_json(uncached).items():
            if isinstance(article, dict):
                self._article_cache.put(article_id, article)
                found[article_id] = article

        return [dict(found[article_id]) for article_id in ids if article_id in found]

    def import_many(self, articles: Iterable[Any]) -> Dict[str, Any]:
        """
        Save a batch of articles, continuing past failures.

        Caller-supplied identifiers are preserved and the counter is moved
        past them; missing identifiers are allocated.

        Returns:
            {"imported": count, "errors": [{"title", "error"}, ...]}
        """
        imported = 0
        errors = []
        for payload in articles:
            title = payload.get("title") if isinstance(payload, dict) else None
            try:
                if not isinstance(payload, dict):
                    raise ValidationError("Article payload must be a JSON object")
                self.save(payload)
                imported += 1
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Failed to import article %r: %s", title, exc)
                errors.append({"title": title or "Unknown", "error": str(exc)})

        logger.info("Imported %d articles with %d errors", imported, len(errors))
        return {"imported": imported, "errors": errors}

    def suggest_permalink(self, title: str) -> str:
        """Return the permalink a new article with this title would get."""
        slug = slugify(title)
        if not slug:
            raise ValidationError("Title is required")
        return ensure_unique(slug, ((e["id"], e.get("permalink")) for e in self.list_all()))

    # ================== INTEGRITY ==================

    def find_missing(self) -> List[Dict[str, Any]]:
        """Return index entries whose full record is absent from the store."""
        index = self._load_index()
        present = self.accessor.get_many_json(e["id"] for e in index)
        return [e for e in index if not isinstance(present.get(e["id"]), dict)]

    def repair(self, article_id: str) -> bool:
        """
        Recreate a placeholder record for an index entry that lost its record.

        The placeholder keeps the entry's title, permalink, label, image and
        date, is forced to draft, and carries a loss notice as content.

        Returns:
            True if a placeholder was written, False if the record exists

        Raises:
            NotFoundError: If no index entry has this id
        """
        entry = next((e for e in self._load_index() if e["id"] == article_id), None)
        if entry is None:
            raise NotFoundError(f"Article {article_id} is not in the index")
        if isinstance(self.accessor.get_json(article_id), dict):
            return False

        placeholder = make_index_entry(entry)
        placeholder.update(
            title=entry.get("title") or f"Recovered article {article_id}",
            permalink=entry.get("permalink") or article_id,
            status=STATUS_DRAFT,
            content=LOSS_NOTICE,
            contentMarkdown=LOSS_NOTICE,
        )
        self.save(placeholder)
        logger.warning("Repaired missing article %s as draft placeholder", article_id)
        return True

    def repair_missing(self) -> List[str]:
        """Repair every index entry without a full record; return their ids."""
        repaired = []
        for entry in self.find_missing():
            if self.repair(entry["id"]):
                repaired.append(entry["id"])
        return repaired

    def diagnostics(self) -> Dict[str, Any]:
        """Describe the index, which entries have records, and the counter."""
        index = self._load_index()
        present = self.accessor.get_many_json(e["id"] for e in index)
        return {
            "index": index,
            "allArticles": [
                {"index": e, "full": present.get(e["id"]), "exists": e["id"] in present}
                for e in index
            ],
            "total": len(index),
            "systemIndexNum": self.allocator.current(),
        }
