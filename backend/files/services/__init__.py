from .hashing import ContentHasher
from .blob_store import BlobStore, PutResult
from .locks import DigestLocks
from .metadata_store import FilterCriteria, MetadataStore
from .file_service import FileService, get_file_service, get_max_upload_size
from .reconciliation import ReconciliationService, get_reconciliation_service

__all__ = [
    'ContentHasher',
    'BlobStore',
    'PutResult',
    'DigestLocks',
    'FilterCriteria',
    'MetadataStore',
    'FileService',
    'get_file_service',
    'get_max_upload_size',
    'ReconciliationService',
    'get_reconciliation_service',
]
