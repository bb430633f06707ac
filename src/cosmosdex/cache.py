"""
Cache module for token metadata.

This module provides the local storage behind the token registry:
- Token records keyed by denom with hybrid LRU/LFU eviction
- Size limits (by token count or memory usage)
- A small key/value area for settings such as user-added tokens
- SQLite-based persistence
- Thread-safety for concurrent access
"""

import json
import logging
import os
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Default cache settings
DEFAULT_MAX_TOKENS = 5000
DEFAULT_CACHE_DIR = Path.home() / ".cosmosdex_cache"
DEFAULT_DB_FILENAME = "token_cache.db"

# Approximate size of a token record in bytes, used to turn MB limits into counts
APPROX_TOKEN_SIZE_BYTES = 1024

LAST_REFRESH_KEY = "tokens.last_refresh"


class TokenMetadataCache:
    """
    Cache for token metadata with hybrid LRU/LFU eviction and optional persistence.

    Features:
    - Thread-safe operations
    - Size limits by token count or memory usage
    - Hybrid LRU/LFU eviction policy
    - Key/value items that are never evicted
    - SQLite-based persistence (optional)
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        max_size_mb: Optional[float] = None,
        persist: bool = False,
        cache_dir: Path = DEFAULT_CACHE_DIR,
    ):
        """
        Initialize the cache with the specified parameters.

        Args:
            max_tokens: Maximum number of tokens to cache
            max_size_mb: Maximum cache size in MB (overrides max_tokens if provided)
            persist: Whether to persist cache to disk
            cache_dir: Directory for cache persistence
        """
        self._lock = threading.RLock()

        if max_size_mb is not None:
            max_size_bytes = max_size_mb * 1024 * 1024
            max_tokens = int(max_size_bytes / APPROX_TOKEN_SIZE_BYTES)
            logger.debug(
                f"Setting max_tokens to {max_tokens} based on {max_size_mb}MB limit"
            )

        self.max_tokens = max_tokens
        self.persist = persist
        self.cache_dir = Path(cache_dir)

        self._cache: Dict[str, dict] = {}  # denom -> token data
        self._metadata: Dict[str, Tuple[int, float]] = {}  # denom -> (access_count, last_access)
        self._items: Dict[str, Any] = {}  # key -> JSON value

        self._conn = None
        if self.persist:
            self._init_persistent_storage()

        logger.info(
            f"Cache initialized: max_tokens={self.max_tokens}, persist={self.persist}"
        )

    @property
    def db_path(self) -> Path:
        return self.cache_dir / DEFAULT_DB_FILENAME

    def _init_persistent_storage(self):
        """Initialize the SQLite database for persistent storage."""
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)

            cursor = self._conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tokens (
                    denom TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    access_count INTEGER NOT NULL,
                    last_access REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            self._conn.commit()

            self._load_from_db()

            logger.debug(f"Initialized persistent cache at {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Error initializing persistent cache: {e}")
            self._conn = None
            self.persist = False

    def _load_from_db(self):
        """Load cached tokens and items from SQLite to memory."""
        if not self._conn:
            return

        try:
            cursor = self._conn.cursor()
            cursor.execute("SELECT denom, data, access_count, last_access FROM tokens")
            rows = cursor.fetchall()
            cursor.execute("SELECT key, value FROM items")
            item_rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error loading from persistent cache: {e}")
            return

        with self._lock:
            for denom, data_json, access_count, last_access in rows:
                try:
                    self._cache[denom] = json.loads(data_json)
                    self._metadata[denom] = (access_count, last_access)
                except ValueError as e:
                    logger.warning(f"Error loading cached token {denom}: {e}")
            for key, value_json in item_rows:
                try:
                    self._items[key] = json.loads(value_json)
                except ValueError as e:
                    logger.warning(f"Error loading cached item {key}: {e}")

        logger.info(f"Loaded {len(rows)} tokens from persistent cache")
        self._log_cache_size()

    def _execute(self, sql: str, params: tuple = ()):
        """Run a write statement against the persistent store, if any."""
        if not self._conn or not self.persist:
            return
        try:
            self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Error writing to persistent cache: {e}")

    def _save_token(self, denom: str, data: dict, metadata: Tuple[int, float]):
        access_count, last_access = metadata
        self._execute(
            "INSERT OR REPLACE INTO tokens (denom, data, access_count, last_access) VALUES (?, ?, ?, ?)",
            (denom, json.dumps(data), access_count, last_access),
        )

    def _touch(self, denom: str):
        access_count, _ = self._metadata.get(denom, (0, 0))
        self._metadata[denom] = (access_count + 1, time.time())

    def get(self, denom: str) -> Optional[dict]:
        """
        Get token metadata from cache.

        Args:
            denom: Token denom

        Returns:
            Token metadata dict if found, None otherwise
        """
        with self._lock:
            data = self._cache.get(denom)
            if data is not None:
                self._touch(denom)
                if self.persist:
                    self._save_token(denom, data, self._metadata[denom])
                logger.debug(f"Cache hit for token {denom}")
            return data

    def get_many(self, denoms: List[str]) -> Dict[str, dict]:
        """
        Get multiple token metadata entries from cache.

        Args:
            denoms: List of token denoms

        Returns:
            Dictionary mapping found denoms to their metadata
        """
        result = {}
        with self._lock:
            for denom in denoms:
                data = self.get(denom)
                if data is not None:
                    result[denom] = data
        return result

    def all(self) -> List[dict]:
        """Every cached token, in insertion order."""
        with self._lock:
            return list(self._cache.values())

    def put(self, denom: str, data: dict):
        """
        Add or update token metadata in cache.

        Args:
            denom: Token denom
            data: Token metadata dict
        """
        with self._lock:
            self._cache[denom] = data
            self._touch(denom)

            if len(self._cache) > self.max_tokens:
                self._evict()

            if self.persist and denom in self._cache:
                self._save_token(denom, data, self._metadata[denom])

    def put_many(self, data_dict: Dict[str, dict]):
        """
        Add or update multiple token metadata entries in cache.

        Args:
            data_dict: Dictionary mapping denoms to metadata
        """
        with self._lock:
            for denom, data in data_dict.items():
                self.put(denom, data)

        self._log_cache_size()

    def remove(self, denom: str) -> bool:
        """Drop one token record; False if it was not cached."""
        with self._lock:
            if self._cache.pop(denom, None) is None:
                return False
            self._metadata.pop(denom, None)
            self._execute("DELETE FROM tokens WHERE denom = ?", (denom,))
            return True

    def replace_all(self, tokens: List[dict], timestamp: Optional[float] = None):
        """
        Swap the cached token set for a freshly merged one.

        Args:
            tokens: Token dicts, each with a "denom" key
            timestamp: Refresh time to record (defaults to now)
        """
        with self._lock:
            self._cache = {}
            self._metadata = {}
            self._execute("DELETE FROM tokens")
            self.put_many({token["denom"]: token for token in tokens})
            self.set_item(LAST_REFRESH_KEY, timestamp if timestamp is not None else time.time())

    def last_refresh(self) -> Optional[float]:
        return self.get_item(LAST_REFRESH_KEY)

    def is_fresh(self, max_age: float, now: Optional[float] = None) -> bool:
        """Whether the token set was refreshed less than max_age seconds ago."""
        timestamp = self.last_refresh()
        if not timestamp or not self._cache:
            return False
        now = time.time() if now is None else now
        return (now - timestamp) < max_age

    def get_item(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._items.get(key, default)

    def set_item(self, key: str, value: Any):
        with self._lock:
            self._items[key] = value
            self._execute(
                "INSERT OR REPLACE INTO items (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )

    def remove_item(self, key: str):
        with self._lock:
            self._items.pop(key, None)
            self._execute("DELETE FROM items WHERE key = ?", (key,))

    def _evict(self):
        """
        Evict token entries based on hybrid LRU/LFU policy.

        This uses a scoring system that considers both frequency and recency:
        - Lower scores are evicted first
        - Score = (access_count * 0.4) + (recency_factor * 0.6)
        """
        if not self._cache:
            return

        current_time = time.time()
        max_age = 30 * 24 * 60 * 60  # 30 days in seconds

        scores = {}
        for denom, (access_count, last_access) in self._metadata.items():
            age = current_time - last_access
            recency_factor = max(0, 1 - (age / max_age))
            scores[denom] = (access_count * 0.4) + (recency_factor * 0.6)

        # Remove 25% of max, at least 1
        num_to_remove = max(1, self.max_tokens // 4)
        to_remove = sorted(scores.keys(), key=lambda d: scores[d])[:num_to_remove]

        for denom in to_remove:
            self._cache.pop(denom, None)
            self._metadata.pop(denom, None)
            self._execute("DELETE FROM tokens WHERE denom = ?", (denom,))

        logger.info(f"Evicted {len(to_remove)} tokens from cache")
        self._log_cache_size()

    def _log_cache_size(self):
        """Log the current size of the cache."""
        cache_size = len(self._cache)
        approx_mb = (cache_size * APPROX_TOKEN_SIZE_BYTES) / (1024 * 1024)
        logger.info(f"Cache status: {cache_size} tokens (~{approx_mb:.2f}MB)")

    def close(self):
        """Close the persistent storage connection."""
        if self._conn:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.warning(f"Error closing cache connection: {e}")
            self._conn = None

    def __len__(self):
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the cache.

        Returns:
            Dictionary with cache statistics
        """
        with self._lock:
            num_entries = len(self._cache)
            approx_size_mb = (num_entries * APPROX_TOKEN_SIZE_BYTES) / (1024 * 1024)

            total_access_count = sum(count for count, _ in self._metadata.values())
            avg_access_count = total_access_count / max(1, len(self._metadata))

            sorted_by_access = sorted(
                self._metadata.items(), key=lambda x: x[1][0], reverse=True
            )[:5]

            return {
                "entries": num_entries,
                "max_entries": self.max_tokens,
                "usage_percent": (num_entries / max(1, self.max_tokens)) * 100,
                "approx_size_mb": approx_size_mb,
                "persist_enabled": self.persist,
                "avg_access_count": avg_access_count,
                "last_refresh": self.last_refresh(),
                "items": sorted(self._items),
                "top_accessed_tokens": [
                    {"denom": denom, "access_count": metadata[0]}
                    for denom, metadata in sorted_by_access
                ],
            }

    def clear(self):
        """
        Clear all entries from the cache.

        This removes tokens and items from both memory and persistent storage
        (if enabled).
        """
        with self._lock:
            self._cache = {}
            self._metadata = {}
            self._items = {}

            self.close()

            if self.persist:
                try:
                    if self.db_path.exists():
                        os.remove(self.db_path)
                        logger.info(f"Deleted database file: {self.db_path}")
                except OSError as e:
                    logger.error(f"Error clearing persistent cache: {e}")
                self._init_persistent_storage()
                logger.info("Reinitialized persistent cache")

        logger.info("Cache cleared")


class CacheManager:
    """
    Manages the lifecycle of cache instances.
    Implements the singleton pattern for default cache management.
    """

    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self._default_cache = None
        self._cache_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> "CacheManager":
        """Get the singleton instance of CacheManager."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_default_cache(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        max_size_mb: Optional[float] = None,
        persist: bool = True,
        cache_dir: Optional[Path] = None,
    ) -> TokenMetadataCache:
        """
        Get or create the default cache instance.

        Args:
            max_tokens: Maximum number of tokens to cache
            max_size_mb: Maximum cache size in MB (overrides max_tokens if provided)
            persist: Whether to persist cache to disk
            cache_dir: Directory for cache persistence

        Returns:
            The default cache instance
        """
        with self._cache_lock:
            if self._default_cache is None:
                self._default_cache = TokenMetadataCache(
                    max_tokens=max_tokens,
                    max_size_mb=max_size_mb,
                    persist=persist,
                    cache_dir=cache_dir or DEFAULT_CACHE_DIR,
                )
                logger.info("Created new default cache instance")
            else:
                stats = self._default_cache.get_stats()
                logger.info(
                    f"Using existing default cache: {stats['entries']}/{stats['max_entries']} entries "
                    f"({stats['usage_percent']:.1f}% full)"
                )

            return self._default_cache

    def delete_default_cache(self, cache_dir: Optional[Path] = None) -> bool:
        """
        Delete the default cache database file.

        Returns:
            bool: True if deletion was successful, False otherwise
        """
        db_path = (cache_dir or DEFAULT_CACHE_DIR) / DEFAULT_DB_FILENAME
        try:
            if db_path.exists():
                if self._default_cache is not None:
                    self._default_cache.close()
                self._default_cache = None
                db_path.unlink()
                logger.info(f"Deleted default cache at {db_path}")
                return True
            return False
        except OSError as e:
            logger.error(f"Error deleting default cache: {e}")
            return False

    def reset(self):
        """Reset the cache manager state (useful for testing)."""
        with self._cache_lock:
            if self._default_cache is not None:
                self._default_cache.close()
            self._default_cache = None


def get_default_cache(
    max_tokens: int = DEFAULT_MAX_TOKENS,
    max_size_mb: Optional[float] = None,
    persist: bool = True,
    cache_dir: Optional[Path] = None,
) -> TokenMetadataCache:
    """Convenience function to get the default cache using CacheManager."""
    return CacheManager.get_instance().get_default_cache(
        max_tokens=max_tokens,
        max_size_mb=max_size_mb,
        persist=persist,
        cache_dir=cache_dir,
    )


def delete_default_cache(cache_dir: Optional[Path] = None) -> bool:
    """Convenience function to delete the default cache using CacheManager."""
    return CacheManager.get_instance().delete_default_cache(cache_dir)
