"""
tests/test_sites.py -- Integration tests for the site routes.

Coverage:
  - create under a customer, restore after delete with the same id
  - a deleted site of another customer does not block a fresh site
  - active names are unique across customers
  - ownership checks on single and per-customer reads, admin-only list/update/delete
"""

from __future__ import annotations

import uuid

from conftest import session, unique_name


class TestSiteLifecycle:
    def test_create_delete_restore(self, api_client) -> None:
        client, store, admin_token = api_client
        headers = session(admin_token)
        customer = store.create_customer(unique_name("Site Co"))
        name = unique_name("Plant")

        resp = client.post(f"/customers/{customer.id}/sites", json={"name": name}, headers=headers)
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        assert data["name"] == name
        assert data["customer_id"] == customer.id
        assert data["customer_name"] == customer.name

        assert client.delete(f"/sites/{data['id']}", headers=headers).status_code == 200
        assert client.get(f"/sites/{data['id']}", headers=headers).status_code == 404

        resp = client.post(f"/customers/{customer.id}/sites", json={"name": name}, headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["message"] == "Site restored"
        assert resp.json()["data"]["id"] == data["id"]

    def test_deleted_site_of_other_customer_does_not_block(self, api_client) -> None:
        client, store, admin_token = api_client
        first = store.create_customer(unique_name("First Co"))
        second = store.create_customer(unique_name("Second Co"))
        name = unique_name("Shared")
        old = store.create_site(first.id, name)
        store.soft_delete_site(old.id)

        resp = client.post(f"/customers/{second.id}/sites", json={"name": name}, headers=session(admin_token))
        assert resp.status_code == 201, resp.text
        assert resp.json()["data"]["id"] != old.id
        assert resp.json()["data"]["customer_id"] == second.id

    def test_active_name_taken_by_other_customer(self, api_client) -> None:
        client, store, admin_token = api_client
        first = store.create_customer(unique_name("Taken Co"))
        second = store.create_customer(unique_name("Taker Co"))
        site = store.create_site(first.id, unique_name("Busy"))
        resp = client.post(f"/customers/{second.id}/sites", json={"name": site.name}, headers=session(admin_token))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Site already exists"

    def test_create_for_missing_customer(self, api_client) -> None:
        client, _store, admin_token = api_client
        resp = client.post(f"/customers/{uuid.uuid4()}/sites", json={"name": "Nowhere"}, headers=session(admin_token))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Customer not found"


class TestSiteAccess:
    def test_owner_reads_site_and_list(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        customer = store.create_customer(unique_name("Reader Co"))
        site = store.create_site(customer.id, unique_name("Mine"))
        token = issue_user_token(customer.id, customer.name)

        resp = client.get(f"/sites/{site.id}", headers=session(token))
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["id"] == site.id

        resp = client.get(f"/customers/{customer.id}/sites", headers=session(token))
        assert resp.status_code == 200
        assert [s["id"] for s in resp.json()["data"]] == [site.id]

    def test_other_customers_site_forbidden(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        mine = store.create_customer(unique_name("Mine Co"))
        theirs = store.create_customer(unique_name("Theirs Co"))
        site = store.create_site(theirs.id, unique_name("Theirs"))
        token = issue_user_token(mine.id, mine.name)

        resp = client.get(f"/sites/{site.id}", headers=session(token))
        assert resp.status_code == 403
        assert resp.json()["error"] == "You are not authorized to access this site"

        resp = client.get(f"/customers/{theirs.id}/sites", headers=session(token))
        assert resp.status_code == 403

    def test_missing_site_is_404_before_ownership(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        customer = store.create_customer(unique_name("Probe Co"))
        token = issue_user_token(customer.id, customer.name)
        resp = client.get(f"/sites/{uuid.uuid4()}", headers=session(token))
        assert resp.status_code == 404

    def test_list_all_sites_admin_only(self, api_client, issue_user_token) -> None:
        client, store, admin_token = api_client
        customer = store.create_customer(unique_name("All Co"))
        site = store.create_site(customer.id, unique_name("Listed"))
        token = issue_user_token(customer.id, customer.name)

        assert client.get("/sites", headers=session(token)).status_code == 403
        resp = client.get("/sites", headers=session(admin_token))
        assert resp.status_code == 200
        assert site.id in {s["id"] for s in resp.json()["data"]}

    def test_invalid_site_id(self, api_client) -> None:
        client, _store, admin_token = api_client
        resp = client.get("/sites/123", headers=session(admin_token))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid site ID"


class TestSiteAdmin:
    def test_rename(self, api_client) -> None:
        client, store, admin_token = api_client
        customer = store.create_customer(unique_name("Rename Co"))
        site = store.create_site(customer.id, unique_name("Old"))
        new_name = unique_name("New")
        resp = client.put(f"/sites/{site.id}", json={"name": new_name}, headers=session(admin_token))
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["name"] == new_name
        assert resp.json()["data"]["customer_id"] == customer.id

    def test_user_cannot_delete(self, api_client, issue_user_token) -> None:
        client, store, _admin = api_client
        customer = store.create_customer(unique_name("Keep Co"))
        site = store.create_site(customer.id, unique_name("Keep"))
        token = issue_user_token(customer.id, customer.name)
        assert client.delete(f"/sites/{site.id}", headers=session(token)).status_code == 403
        assert store.get_site(site.id) is not None

    def test_delete_missing(self, api_client) -> None:
        client, _store, admin_token = api_client
        assert client.delete(f"/sites/{uuid.uuid4()}", headers=session(admin_token)).status_code == 404

    def test_site_of_deleted_customer_is_gone(self, api_client) -> None:
        client, store, admin_token = api_client
        customer = store.create_customer(unique_name("Closed Co"))
        site = store.create_site(customer.id, unique_name("Orphan"))
        store.soft_delete_customer(customer.id)

        headers = session(admin_token)
        assert client.get(f"/sites/{site.id}", headers=headers).status_code == 404
        assert client.put(f"/sites/{site.id}", json={"name": unique_name("X")}, headers=headers).status_code == 404
        assert site.id not in {s["id"] for s in client.get("/sites", headers=headers).json()["data"]}
