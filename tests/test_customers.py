"""
tests/test_customers.py -- Integration tests for the /customers routes.

Coverage:
  - create -> delete -> create restores the same id ("Acme Co" lifecycle)
  - duplicate active name -> 400
  - ownership: a user sees only its own customer, 403 before existence
  - admin-only list/update/delete, rename conflicts, UUID validation
"""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from conftest import session, unique_name


class TestCustomerLifecycle:
    def test_create_delete_restore_keeps_id(self, api_client: tuple[TestClient, object, str]) -> None:
        client, _store, admin_token = api_client
        headers = session(admin_token)

        resp = client.post("/customers", json={"name": "Acme Co"}, headers=headers)
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        body = resp.json()
        assert body["message"] == "Customer created"
        customer_id = body["data"]["id"]
        assert str(uuid.UUID(customer_id)) == customer_id
        assert body["data"]["name"] == "Acme Co"

        resp = client.delete(f"/customers/{customer_id}", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"status": 200, "message": "Customer deleted"}

        resp = client.get(f"/customers/{customer_id}", headers=headers)
        assert resp.status_code == 404

        resp = client.post("/customers", json={"name": "Acme Co"}, headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["message"] == "Customer restored"
        assert resp.json()["data"] == {"id": customer_id, "name": "Acme Co"}

    def test_duplicate_active_name_rejected(self, api_client) -> None:
        client, _store, admin_token = api_client
        headers = session(admin_token)
        name = unique_name("Dup Co")
        assert client.post("/customers", json={"name": name}, headers=headers).status_code == 201
        resp = client.post("/customers", json={"name": name}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Customer already exists"

    def test_empty_name_rejected(self, api_client) -> None:
        client, _store, admin_token = api_client
        resp = client.post("/customers", json={"name": "   "}, headers=session(admin_token))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid request body"

    def test_delete_twice_is_404(self, api_client) -> None:
        client, store, admin_token = api_client
        customer = store.create_customer(unique_name("Twice Co"))
        headers = session(admin_token)
        assert client.delete(f"/customers/{customer.id}", headers=headers).status_code == 200
        assert client.delete(f"/customers/{customer.id}", headers=headers).status_code == 404


class TestCustomerAccess:
    def test_owner_can_fetch(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        customer = store.create_customer(unique_name("Owner Co"))
        token = issue_user_token(customer.id, customer.name)
        resp = client.get(f"/customers/{customer.id}", headers=session(token))
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"] == {"id": customer.id, "name": customer.name}

    def test_other_customer_forbidden_even_if_missing(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        mine = store.create_customer(unique_name("Mine Co"))
        theirs = store.create_customer(unique_name("Theirs Co"))
        token = issue_user_token(mine.id, mine.name)

        resp = client.get(f"/customers/{theirs.id}", headers=session(token))
        assert resp.status_code == 403
        assert resp.json()["error"] == "Unauthorized access"

        resp = client.get(f"/customers/{uuid.uuid4()}", headers=session(token))
        assert resp.status_code == 403

    def test_user_cannot_create(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        customer = store.create_customer(unique_name("Create Co"))
        token = issue_user_token(customer.id, customer.name)
        resp = client.post("/customers", json={"name": unique_name("Nope")}, headers=session(token))
        assert resp.status_code == 403

    def test_invalid_uuid(self, api_client) -> None:
        client, _store, admin_token = api_client
        resp = client.get("/customers/not-a-uuid", headers=session(admin_token))
        assert resp.status_code == 400
        assert resp.json() == {"status": 400, "message": "Invalid customer ID", "error": "Invalid UUID format"}

    def test_uppercase_uuid_normalized(self, api_client) -> None:
        client, store, admin_token = api_client
        customer = store.create_customer(unique_name("Case Co"))
        resp = client.get(f"/customers/{customer.id.upper()}", headers=session(admin_token))
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == customer.id


class TestCustomerAdmin:
    def test_list_excludes_deleted(self, api_client) -> None:
        client, store, admin_token = api_client
        kept = store.create_customer(unique_name("Kept Co"))
        gone = store.create_customer(unique_name("Gone Co"))
        store.soft_delete_customer(gone.id)
        resp = client.get("/customers", headers=session(admin_token))
        assert resp.status_code == 200
        ids = {c["id"] for c in resp.json()["data"]}
        assert kept.id in ids
        assert gone.id not in ids

    def test_rename(self, api_client) -> None:
        client, store, admin_token = api_client
        customer = store.create_customer(unique_name("Rename Co"))
        new_name = unique_name("Renamed Co")
        resp = client.put(f"/customers/{customer.id}", json={"name": new_name}, headers=session(admin_token))
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"] == {"id": customer.id, "name": new_name}
        assert store.get_customer(customer.id).name == new_name

    def test_rename_onto_active_name_rejected(self, api_client) -> None:
        client, store, admin_token = api_client
        first = store.create_customer(unique_name("First Co"))
        second = store.create_customer(unique_name("Second Co"))
        resp = client.put(f"/customers/{second.id}", json={"name": first.name}, headers=session(admin_token))
        assert resp.status_code == 400

    def test_update_missing_customer(self, api_client) -> None:
        client, _store, admin_token = api_client
        resp = client.put(f"/customers/{uuid.uuid4()}", json={"name": "Whatever"}, headers=session(admin_token))
        assert resp.status_code == 404
        assert resp.json()["error"] == "No customer found with the given ID"
