import pytest

from storage import MemoryStore, SqlStore, make_store


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    s = SqlStore(f"sqlite:///{tmp_path / 'kv.db'}")
    s.create_schema()
    return s


def test_missing_key_returns_default(store):
    assert store.get("users") is None
    assert store.get("users", []) == []


def test_set_overwrites_whole_value(store):
    store.set("users", [{"id": "U1"}])
    store.set("users", [{"id": "U2"}, {"id": "U3"}])
    assert store.get("users") == [{"id": "U2"}, {"id": "U3"}]


def test_keys_by_prefix_and_delete(store):
    store.set("profilePic_U1", "data:image/png;base64,AA")
    store.set("profilePic_U2", "data:image/png;base64,BB")
    store.set("theme", "dark")
    assert store.keys("profilePic_") == ["profilePic_U1", "profilePic_U2"]
    store.delete("profilePic_U1")
    assert store.keys("profilePic_") == ["profilePic_U2"]
    store.delete("does-not-exist")


def test_ping(store):
    assert store.ping() is True


def test_sql_store_persists_across_instances(tmp_path):
    url = f"sqlite:///{tmp_path / 'kv.db'}"
    first = SqlStore(url)
    first.create_schema()
    first.set("language", "bn")
    assert SqlStore(url).get("language") == "bn"


def test_make_store_rejects_unknown_backend():
    assert isinstance(make_store("memory"), MemoryStore)
    with pytest.raises(ValueError):
        make_store("redis")
