from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """
    Durable key-value storage used by the history store.

    Implementations wrap their own failures in StorageError.
    Each call is one complete read or write: a value is never
    left partially written.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self, key: str) -> None:
        """
        Remove `key`. Missing keys are not an error.
        """
        raise NotImplementedError
