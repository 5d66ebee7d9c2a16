from conversation_analysis.core.storage.port import KeyValueStorage
from conversation_analysis.infrastructure.storage.file import FileKeyValueStorage
from conversation_analysis.infrastructure.storage.memory import InMemoryKeyValueStorage


_SQL_SCHEMES = ("sqlite", "postgresql", "postgres", "mysql")


def open_storage(url: str) -> KeyValueStorage:
    """
    Pick a storage backend from a location string.

    memory://                -> in-process dict (lost on exit)
    sqlite:///..., postgresql://...  -> SQL table kv_store
    anything else            -> directory for one-file-per-key storage
    """
    if url == "memory://":
        return InMemoryKeyValueStorage()

    scheme = url.split(":", 1)[0].split("+", 1)[0].lower() if "://" in url else ""
    if scheme in _SQL_SCHEMES:
        # sqlalchemy is imported only when a database is configured
        from conversation_analysis.infrastructure.storage.sql import SqlKeyValueStorage

        return SqlKeyValueStorage.from_url(url)

    return FileKeyValueStorage(url)
