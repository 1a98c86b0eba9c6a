"""
Tests for the in-memory Firestore client and the repositories on top of it.

Covers:
- Document set / get / merge / delete
- Equality queries
- Session repository ordering and round trip
"""

import threading

from core.database import MockFirestoreClient
from analysis_service.models.repositories import SessionRepository
from analysis_service.models.types import AnalysisTier, FormScore, SyncStatus


class TestMockFirestoreClient:

    def test_set_and_get(self):
        db = MockFirestoreClient()
        db.collection("things").document("a").set({"value": 1})

        snapshot = db.collection("things").document("a").get()
        assert snapshot.exists is True
        assert snapshot.to_dict() == {"value": 1}

    def test_missing_document(self):
        snapshot = MockFirestoreClient().collection("things").document("nope").get()

        assert snapshot.exists is False
        assert snapshot.to_dict() is None

    def test_set_replaces_unless_merge(self):
        doc = MockFirestoreClient().collection("things").document("a")
        doc.set({"a": 1, "b": 2})
        doc.set({"a": 3})
        assert doc.get().to_dict() == {"a": 3}

        doc.set({"b": 4}, merge=True)
        assert doc.get().to_dict() == {"a": 3, "b": 4}

    def test_snapshots_are_copies(self):
        doc = MockFirestoreClient().collection("things").document("a")
        doc.set({"a": 1})

        data = doc.get().to_dict()
        data["a"] = 99
        assert doc.get().to_dict() == {"a": 1}

    def test_delete(self):
        doc = MockFirestoreClient().collection("things").document("a")
        doc.set({"a": 1})
        doc.delete()
        assert doc.get().exists is False

    def test_where_filters(self):
        collection = MockFirestoreClient().collection("things")
        collection.document("1").set({"owner": "x", "kind": "a"})
        collection.document("2").set({"owner": "y", "kind": "a"})
        collection.document("3").set({"owner": "x", "kind": "b"})

        assert {s.id for s in collection.where("owner", "==", "x").stream()} == {"1", "3"}
        assert [s.id for s in collection.where("owner", "==", "x").where("kind", "==", "b").stream()] == ["3"]
        assert len(list(collection.stream())) == 3

    def test_concurrent_writers(self):
        collection = MockFirestoreClient().collection("things")

        def write(start):
            for i in range(start, start + 50):
                collection.document(str(i)).set({"i": i})

        threads = [threading.Thread(target=write, args=(n * 50,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(list(collection.stream())) == 200


class TestSessionRepository:

    def test_sessions_are_per_user_and_oldest_first(self, make_session, make_result, make_issue):
        repo = SessionRepository(MockFirestoreClient())
        later = make_session(2, score=FormScore.A)
        earlier = make_session(1, issues=[make_issue()])
        earlier.form_analysis = make_result(issues=[make_issue()])
        earlier.analysis_tier = AnalysisTier.BASIC
        earlier.sync_status = SyncStatus.SYNCED

        repo.save_session(later)
        repo.save_session(earlier)
        repo.save_session(make_session(3, user_id="someone_else"))

        sessions = repo.get_sessions_for_user("player_1")

        assert [s.id for s in sessions] == ["session_1", "session_2"]
        assert sessions[0].detected_issues == earlier.detected_issues
        assert sessions[0].form_analysis == earlier.form_analysis
        assert sessions[0].analysis_tier == AnalysisTier.BASIC
        assert sessions[0].timestamp == earlier.timestamp

    def test_unknown_user(self):
        assert SessionRepository(MockFirestoreClient()).get_sessions_for_user("nobody") == []
