"""Token cache management using msal-extensions."""

import logging
import sys
from pathlib import Path
from typing import Optional

from msal_extensions import (
    FilePersistence,
    FilePersistenceWithDataProtection,
    KeychainPersistence,
    LibsecretPersistence,
    PersistedTokenCache,
)
from msal_extensions.persistence import BasePersistence

from ..config import StorageConfig
from ..utils.exceptions import TokenCacheError

logger = logging.getLogger(__name__)


class TokenCacheManager:
    """Manages the encrypted, persisted MSAL token cache."""

    def __init__(self, storage: StorageConfig):
        """
        Initialize token cache manager.

        Args:
            storage: Cache location and secure-storage coordinates
        """
        self.storage = storage
        self._cache: Optional[PersistedTokenCache] = None

    @property
    def cache_file(self) -> Path:
        if self.storage.encrypted:
            return self.storage.cache_path
        return self.storage.cache_path.with_suffix(".json")

    def get_cache(self) -> PersistedTokenCache:
        """
        Get or create the token cache.

        Returns:
            Configured PersistedTokenCache instance

        Raises:
            TokenCacheError: If cache initialization fails
        """
        if self._cache is not None:
            return self._cache

        try:
            self.storage.cache_directory.mkdir(parents=True, exist_ok=True)
            persistence = self._build_persistence()
            self._cache = PersistedTokenCache(persistence)
        except TokenCacheError:
            raise
        except Exception as e:
            raise TokenCacheError(f"Failed to initialize token cache: {e}") from e

        logger.info(f"Token cache initialized at {self.cache_file}")
        return self._cache

    def _build_persistence(self) -> BasePersistence:
        location = str(self.cache_file)

        if not self.storage.encrypted:
            logger.warning("Token cache encryption disabled, using plaintext file")
            return FilePersistence(location)

        if sys.platform == "win32":
            return FilePersistenceWithDataProtection(location)

        if sys.platform == "darwin":
            return KeychainPersistence(
                location,
                self.storage.keychain_service_name,
                self.storage.keychain_account_name,
            )

        # Linux
        try:
            return LibsecretPersistence(
                location,
                schema_name=self.storage.linux_keyring_schema,
                attributes=self.storage.linux_keyring_attributes,
                collection=self.storage.linux_keyring_collection,
                label=self.storage.linux_keyring_label,
            )
        except Exception as e:
            if not self.storage.allow_plaintext_fallback:
                raise TokenCacheError(
                    f"libsecret keyring unavailable and plaintext fallback disabled: {e}"
                ) from e
            logger.warning(f"libsecret unavailable ({e}), falling back to plaintext file")
            return FilePersistence(location)

    def clear_cache(self) -> None:
        """Delete the persisted cache file and drop the in-memory cache."""
        self._cache = None
        try:
            self.cache_file.unlink()
        except FileNotFoundError:
            logger.debug(f"No token cache file at {self.cache_file}")
            return
        except OSError as e:
            raise TokenCacheError(f"Failed to clear token cache: {e}") from e
        logger.info("Token cache cleared")
