"""Key-value stores for the logical-key to session-id mapping.

The session manager never reaches for a global; whoever owns the chat
surfaces passes one of these in. Setting a key always replaces the
previous value.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from .models import ConversationState, ProductContext

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal get/set capability keyed by logical context."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the session id stored under `key`, if any."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed mapping, lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


def load_conversation_state(raw: str | None) -> ConversationState:
    """Parse persisted conversation state, falling back to empty defaults.

    Missing or malformed payloads never raise; fields that fail
    validation are reset individually where possible.
    """
    if not raw:
        return ConversationState()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return ConversationState()
    if not isinstance(data, dict):
        return ConversationState()

    mapping = data.get("last_session_by_key")
    if not isinstance(mapping, dict):
        mapping = {}
    history = data.get("browsing_history")
    if not isinstance(history, list):
        history = []

    try:
        last_product = ProductContext.model_validate(data["last_product"]) if data.get("last_product") else None
    except ValidationError:
        last_product = None

    products = []
    for item in history:
        try:
            products.append(ProductContext.model_validate(item))
        except ValidationError:
            continue

    return ConversationState(
        last_session_by_key={str(k): str(v) for k, v in mapping.items() if v},
        last_product=last_product,
        browsing_history=products,
    )


class ConversationStateStore(KeyValueStore):
    """JSON-file persisted conversation state.

    Besides the key mapping it carries the browsing context (last
    product and recently viewed products) forwarded with chat requests.
    Every mutation is written through to disk.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._state = self._load()

    def _load(self) -> ConversationState:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ConversationState()
        except OSError as e:
            logger.warning("Could not read conversation state %s: %s", self._path, e)
            return ConversationState()
        return load_conversation_state(raw)

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(self._state.model_dump_json(), encoding="utf-8")
        except OSError as e:
            # The in-memory state stays authoritative for this run.
            logger.warning("Could not persist conversation state %s: %s", self._path, e)

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._state.last_session_by_key.get(key)

    def set(self, key: str, value: str) -> None:
        mapping = {**self._state.last_session_by_key, key: value}
        self._state = self._state.model_copy(update={"last_session_by_key": mapping})
        self._save()

    def set_current_product(self, product: ProductContext) -> None:
        """Record `product` as the one currently being viewed."""
        self._state = self._state.apply_current_product(product)
        self._save()
