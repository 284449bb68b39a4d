"""Persistence of the active cart identifier."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "medusa_cart_id"


class CartIdStore(Protocol):
    """Holds the one logical value: the identifier of the active cart."""

    def get(self) -> Optional[str]: ...

    def set(self, cart_id: Optional[str]) -> None: ...

    def clear(self) -> None: ...


class MemoryCartIdStore:
    """Cart identifier kept for the lifetime of the process."""

    def __init__(self, cart_id: Optional[str] = None) -> None:
        self.cart_id = cart_id

    def get(self) -> Optional[str]:
        return self.cart_id

    def set(self, cart_id: Optional[str]) -> None:
        self.cart_id = cart_id or None

    def clear(self) -> None:
        self.cart_id = None


class FileCartIdStore:
    """Cart identifier persisted in a JSON session file."""

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the store.

        Args:
            session_file: Path to the session file. Defaults to ~/.storefront_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".storefront_session.json")
        self.session_file = session_file

    def _load(self) -> dict:
        if not os.path.exists(self.session_file):
            return {}
        try:
            with open(self.session_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            # Corrupted file: start fresh
            logger.warning(f"Could not load session from {self.session_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        with open(self.session_file, "w") as f:
            json.dump(data, f, indent=2)
        os.chmod(self.session_file, 0o600)

    def get(self) -> Optional[str]:
        cart_id = self._load().get(CART_STORAGE_KEY)
        return cart_id if isinstance(cart_id, str) and cart_id else None

    def set(self, cart_id: Optional[str]) -> None:
        if not cart_id:
            self.clear()
            return

        data = self._load()
        data[CART_STORAGE_KEY] = cart_id
        self._save(data)
        logger.debug(f"Stored cart id {cart_id} in {self.session_file}")

    def clear(self) -> None:
        data = self._load()
        if CART_STORAGE_KEY not in data:
            return

        del data[CART_STORAGE_KEY]
        if data:
            self._save(data)
        else:
            os.remove(self.session_file)
        logger.info("Stored cart id cleared")
