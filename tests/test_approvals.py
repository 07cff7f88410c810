import base64
import json

import pytest
from sqlalchemy.orm import sessionmaker

from reviewdash.database import init_db, make_engine
from reviewdash.services.approval_service import (
    APPROVAL_KEY, ApprovalStore, InMemoryKeyValueStore, SqlKeyValueStore,
    decode_public_payload, encode_public_payload, public_summary, public_view, stars,
)

from conftest import make_review


class BrokenStore(InMemoryKeyValueStore):
    def set(self, key, value):
        raise RuntimeError("quota exceeded")

    def clear(self, key):
        raise RuntimeError("storage disabled")


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def db_session():
    engine = make_engine("sqlite://")
    init_db(engine)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class TestApprovalStore:
    def test_starts_empty(self, kv):
        store = ApprovalStore(kv)
        assert store.read() == set()
        assert store.ids() == []

    def test_toggle_approves_then_revokes(self, kv):
        store = ApprovalStore(kv)
        store.toggle("7453")
        assert store.is_approved("7453")
        assert json.loads(kv.data[APPROVAL_KEY]) == ["7453"]
        store.toggle("7453")
        assert not store.is_approved("7453")
        assert json.loads(kv.data[APPROVAL_KEY]) == []

    def test_toggle_leaves_other_ids(self, kv):
        store = ApprovalStore(kv)
        for review_id in ("a", "b", "c"):
            store.toggle(review_id)
        store.toggle("b")
        assert store.ids() == ["a", "c"]

    def test_survives_reload(self, kv):
        ApprovalStore(kv).toggle("a")
        assert ApprovalStore(kv).read() == {"a"}

    @pytest.mark.parametrize("stored", ["not json", "{}", "[1, 2]", '"a"', "null", ""])
    def test_corrupted_value_reads_as_empty(self, stored):
        store = ApprovalStore(InMemoryKeyValueStore({APPROVAL_KEY: stored}))
        assert store.read() == set()

    def test_duplicates_collapse(self):
        store = ApprovalStore(InMemoryKeyValueStore({APPROVAL_KEY: '["a", "b", "a"]'}))
        assert store.ids() == ["a", "b"]

    def test_failed_writes_keep_memory_state(self):
        store = ApprovalStore(BrokenStore())
        store.toggle("a")
        assert store.read() == {"a"}
        store.clear()
        assert store.read() == set()

    def test_clear(self, kv):
        store = ApprovalStore(kv)
        store.toggle("a")
        store.clear()
        assert store.ids() == []
        assert APPROVAL_KEY not in kv.data

    def test_sql_backed_store(self, db_session):
        store = ApprovalStore(SqlKeyValueStore(db_session))
        store.toggle("7453")
        store.toggle("7454")
        store.toggle("7453")
        assert ApprovalStore(SqlKeyValueStore(db_session)).ids() == ["7454"]
        store.clear()
        assert SqlKeyValueStore(db_session).get(APPROVAL_KEY) is None


class TestPublicView:
    @pytest.fixture
    def reviews(self):
        return [
            make_review("1", listing="Cozy Flat", rating=9),
            make_review("2", listing="Cozy Flat", rating=6),
            make_review("3", listing="Camden Studio", rating=None),
        ]

    def test_only_approved_and_present(self, reviews):
        out = public_view(reviews, {"1", "3", "ghost"})
        assert [r.review_id for r in out] == ["1", "3"]

    def test_narrow_to_listing(self, reviews):
        assert [r.review_id for r in public_view(reviews, {"1", "3"}, "cozy-flat")] == ["1"]
        assert len(public_view(reviews, {"1", "3"}, "all")) == 2

    def test_nothing_approved(self, reviews):
        assert public_view(reviews, set()) == []

    def test_summary(self, reviews):
        assert public_summary(reviews) == {"count": 3, "avg": 7.5}
        assert public_summary([]) == {"count": 0, "avg": None}


@pytest.mark.parametrize("score, expected", [
    (None, "—"), (0, "☆☆☆☆☆"), (9.0, "★★★★★"), (7, "★★★★☆"), (6.9, "★★★☆☆"), (10, "★★★★★"),
])
def test_stars(score, expected):
    assert stars(score) == expected


class TestPublicPayload:
    def test_round_trip(self):
        pub = encode_public_payload("cozy-flat", ["7453", "7459"])
        payload = decode_public_payload(pub)
        assert payload.listing_id == "cozy-flat"
        assert payload.approved_ids == ["7453", "7459"]

    def test_wire_shape(self):
        pub = encode_public_payload("cozy-flat", ["1"])
        assert json.loads(base64.b64decode(pub)) == {"listingId": "cozy-flat", "approvedIds": ["1"]}

    def test_tolerates_query_mangling(self):
        raw = json.dumps({"listingId": "a", "approvedIds": ["x>>", "y??"]}).encode()
        pub = base64.b64encode(raw).decode()
        assert "+" in pub or "/" in pub or "=" in pub
        mangled = pub.replace("+", " ").rstrip("=")
        assert decode_public_payload(mangled).approved_ids == ["x>>", "y??"]
        assert decode_public_payload(base64.urlsafe_b64encode(raw).decode()).listing_id == "a"

    def test_missing_ids_become_empty(self):
        pub = base64.b64encode(b'{"listingId": "cozy-flat"}').decode()
        assert decode_public_payload(pub).approved_ids == []

    @pytest.mark.parametrize("pub", [None, "", "%%%", "bm90IGpzb24=", "WzEsMiwzXQ==", "eyJhcHByb3ZlZElkcyI6IFtdfQ=="])
    def test_garbage_decodes_to_none(self, pub):
        assert decode_public_payload(pub) is None
