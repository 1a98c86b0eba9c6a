"""
SHOTCOACH Firebase Database Initialization

Initializes Firebase Admin SDK for Firestore access.
Supports mock mode when credentials are unavailable.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from core.config import settings

logger = logging.getLogger(__name__)

# Global Firestore client
_db: Optional[firestore.Client] = None
_mock_db: Optional["MockFirestoreClient"] = None
_mock_mode: bool = False


def init_firebase() -> bool:
    """
    Initialize Firebase Admin SDK.
    
    Returns:
        bool: True if connected successfully, False if running in mock mode.
    """
    global _db, _mock_mode
    
    if _db is not None:
        return not _mock_mode
    
    cred_path = Path(__file__).parent.parent / settings.FIREBASE_CREDENTIALS_PATH
    
    if not cred_path.exists():
        logger.warning(
            f"⚠️ Firebase credentials not found at '{cred_path}'. "
            "Running in MOCK MODE - sessions and capability cache kept in memory."
        )
        _mock_mode = True
        return False
    
    try:
        cred = credentials.Certificate(str(cred_path))
        
        # Already initialized during hot reload
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred, {
                'projectId': settings.FIREBASE_PROJECT_ID,
            })
            logger.info(f"🔥 Firebase Admin SDK initialized for project: {settings.FIREBASE_PROJECT_ID}")
        
        _db = firestore.client()
        logger.info("✅ Connected to Firestore successfully!")
        return True
        
    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase: {e}")
        logger.warning("Running in MOCK MODE - database operations will be simulated.")
        _mock_mode = True
        return False


def get_db() -> Optional[firestore.Client]:
    """Get Firestore database client, or None in mock mode."""
    if _db is None and not _mock_mode:
        init_firebase()
    return _db


def is_mock_mode() -> bool:
    """Check if running in mock mode (no Firebase connection)."""
    return _mock_mode


# ============================================
# Mock Database for Development/Testing
# ============================================

class MockFirestoreClient:
    """
    In-memory stand-in for the Firestore client.
    
    Document writes replace the stored dict under a client-wide lock, so a
    concurrent reader sees either the old record or the new one.
    """
    
    def __init__(self):
        self._collections: Dict[str, "MockCollection"] = {}
        self._lock = threading.RLock()
        logger.info("🧪 MockFirestoreClient initialized (in-memory storage)")
    
    def collection(self, name: str) -> "MockCollection":
        with self._lock:
            if name not in self._collections:
                self._collections[name] = MockCollection(name, self._lock)
            return self._collections[name]


class MockCollection:
    """Mock Firestore collection."""
    
    def __init__(self, name: str, lock: threading.RLock):
        self.name = name
        self._lock = lock
        self._documents: Dict[str, Dict[str, Any]] = {}
    
    def document(self, doc_id: Optional[str] = None) -> "MockDocumentReference":
        with self._lock:
            if doc_id is None:
                doc_id = f"mock_{len(self._documents) + 1}"
        return MockDocumentReference(doc_id, self)
    
    def where(self, field: str, op: str, value: Any) -> "MockQuery":
        return MockQuery(self, [(field, op, value)])
    
    def stream(self):
        return MockQuery(self, []).stream()
    
    def _snapshot(self, doc_id: str) -> "MockDocumentSnapshot":
        with self._lock:
            data = self._documents.get(doc_id)
            return MockDocumentSnapshot(doc_id, dict(data) if data is not None else None)
    
    def _write(self, doc_id: str, data: Dict[str, Any], merge: bool):
        with self._lock:
            if merge and doc_id in self._documents:
                merged = dict(self._documents[doc_id])
                merged.update(data)
                self._documents[doc_id] = merged
            else:
                self._documents[doc_id] = dict(data)
    
    def _delete(self, doc_id: str):
        with self._lock:
            self._documents.pop(doc_id, None)
    
    def _all(self) -> List["MockDocumentSnapshot"]:
        with self._lock:
            return [MockDocumentSnapshot(doc_id, dict(data)) for doc_id, data in self._documents.items()]


class MockQuery:
    """Equality-only query over a mock collection."""
    
    def __init__(self, collection: MockCollection, filters: list):
        self._collection = collection
        self._filters = filters
    
    def where(self, field: str, op: str, value: Any) -> "MockQuery":
        return MockQuery(self._collection, self._filters + [(field, op, value)])
    
    def stream(self):
        for snapshot in self._collection._all():
            data = snapshot.to_dict()
            if all(op == "==" and data.get(field) == value for field, op, value in self._filters):
                yield snapshot


class MockDocumentReference:
    """Mock Firestore document reference."""
    
    def __init__(self, doc_id: str, collection: MockCollection):
        self.id = doc_id
        self._collection = collection
    
    def set(self, data: Dict[str, Any], merge: bool = False):
        self._collection._write(self.id, data, merge)
    
    def get(self) -> "MockDocumentSnapshot":
        return self._collection._snapshot(self.id)
    
    def delete(self):
        self._collection._delete(self.id)


class MockDocumentSnapshot:
    """Point-in-time copy of a mock document."""
    
    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self._data = data
        self.exists = data is not None
    
    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


def get_mock_db() -> MockFirestoreClient:
    """Get the shared in-memory database client."""
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestoreClient()
    return _mock_db


# ============================================
# Database Helper Functions
# ============================================

def get_database():
    """
    Get database client (real or mock).
    Use this in services to automatically handle mock mode.
    """
    db = get_db()
    if db is None:
        return get_mock_db()
    return db
