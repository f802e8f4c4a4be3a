import pytest
from fastapi.testclient import TestClient

import manage
from main import app
from state import get_state


def test_lifespan_builds_and_seeds_state():
    with TestClient(app) as client:
        assert client.get("/api/ready").json() == {"ok": True, "store": "up", "verifier": "admin"}
        assert len(client.get("/api/subscription/plans").json()) == 4
        assert client.get("/").json()["startup_error"] == ""
    with pytest.raises(RuntimeError):
        get_state()


def test_health(client):
    assert client.get("/api/health").json() == {"ok": True}
    assert client.get("/api/payments/ping").json()["verifier"] == "admin"


def test_domain_errors_carry_a_code(client, auth_headers):
    r = client.get("/api/payments/TXN404", headers=auth_headers)
    assert r.status_code == 404
    assert set(r.json()) == {"detail", "code"}
    assert r.json()["code"] == "errorNotFound"


def test_manage_seed_demo(state_factory, capsys):
    state = state_factory()
    assert manage.main(["seed", "--demo"], state=state) == 0
    assert [u.email for u in state.list_users()] == ["john.doe@example.com"]
    assert "demo household GCC-JD-" in capsys.readouterr().out
    # seeding twice keeps the existing households
    manage.main(["seed", "--demo"], state=state)
    assert len(state.list_users()) == 1


def test_manage_set_status_and_payment(state, user):
    manage.main(["set-status", "--email", user.email.upper(), "--status", "blocked"], state=state)
    assert state.get_user(user.id).status == "blocked"

    payment = state.initiate_payment(user.id)
    manage.main(["set-payment", "--id", payment.id, "--status", "verified"], state=state)
    assert state.outstanding_balance(user.id) == 0
    with pytest.raises(SystemExit):
        manage.main(["set-payment", "--id", payment.id, "--status", "rejected"], state=state)


def test_manage_unknown_user(state):
    with pytest.raises(SystemExit):
        manage.main(["set-status", "--email", "ghost@example.com", "--status", "active"], state=state)
