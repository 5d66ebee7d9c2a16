from typing import Dict, Optional

from conversation_analysis.core.storage.port import KeyValueStorage


class InMemoryKeyValueStorage(KeyValueStorage):
    def __init__(self):
        self._values: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._values.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._values[key] = bytes(value)

    def clear(self, key: str) -> None:
        self._values.pop(key, None)
