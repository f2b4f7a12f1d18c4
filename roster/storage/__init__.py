from roster.storage.base import StorageAdapter, assert_conforms_to_storage_contract
from roster.storage.document_store import DocumentStoreAdapter
from roster.storage.errors import AdapterInitError, RemoteProtocolError, StorageError, TransactionError
from roster.storage.key_value import KeyValueStorageAdapter
from roster.storage.local_store import LocalStore, get_local_store
from roster.storage.remote import RemoteStorageAdapter

__all__ = [
    "AdapterInitError",
    "DocumentStoreAdapter",
    "KeyValueStorageAdapter",
    "LocalStore",
    "RemoteProtocolError",
    "RemoteStorageAdapter",
    "StorageAdapter",
    "StorageError",
    "TransactionError",
    "assert_conforms_to_storage_contract",
    "get_local_store",
]
