"""
SHOTCOACH Analysis Service - Repositories

Firestore-backed access to the device capability cache and the shooting
session history. Both take the database client explicitly; pass
`core.database.get_database()` in the app and a MockFirestoreClient in tests.
"""

import logging
from typing import Any, List, Optional, Tuple

from .types import DeviceCapabilities, ShootingSession

logger = logging.getLogger(__name__)

CAPABILITIES_COLLECTION = "device_capabilities"
CAPABILITIES_DOC_ID = "1"  # one device, one row
SESSIONS_COLLECTION = "shooting_sessions"


class CapabilityCache:
    """Single-record store for the last capability assessment."""
    
    def __init__(self, db: Any):
        self._db = db
    
    def _document(self):
        return self._db.collection(CAPABILITIES_COLLECTION).document(CAPABILITIES_DOC_ID)
    
    def load(self) -> Optional[Tuple[DeviceCapabilities, int]]:
        """
        Return (capabilities, last_assessed epoch millis), or None when no
        usable record exists. Read errors are logged and treated as a miss.
        """
        try:
            snapshot = self._document().get()
            if not snapshot.exists:
                return None
            data = snapshot.to_dict()
            return DeviceCapabilities.from_dict(data), int(data["last_assessed"])
        except Exception as e:
            logger.warning(f"⚠️ Could not read cached capabilities: {e}")
            return None
    
    def save(self, capabilities: DeviceCapabilities, last_assessed_ms: int):
        """Insert-or-replace the record. A full `set` is an atomic replace."""
        record = capabilities.to_dict()
        record["last_assessed"] = int(last_assessed_ms)
        self._document().set(record)
    
    def clear(self):
        self._document().delete()


class SessionRepository:
    """Shooting session history per user."""
    
    def __init__(self, db: Any):
        self._db = db
    
    def get_sessions_for_user(self, user_id: str) -> List[ShootingSession]:
        """All sessions for a user, oldest first."""
        query = self._db.collection(SESSIONS_COLLECTION).where("user_id", "==", user_id)
        sessions = [ShootingSession.from_dict(doc.to_dict()) for doc in query.stream()]
        sessions.sort(key=lambda session: session.timestamp)
        return sessions
    
    def save_session(self, session: ShootingSession):
        self._db.collection(SESSIONS_COLLECTION).document(session.id).set(session.to_dict())
        logger.info(f"💾 Session {session.id} saved for user {session.user_id}")
