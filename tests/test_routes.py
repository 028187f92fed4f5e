"""
Tests for the HTTP API.

End-to-end through FastAPI with a SQLite database and the in-memory store:
authentication gates, CSRF enforcement, country/state/account CRUD and the
listing endpoints.
"""

import pytest

from geoadmin.api.dependencies import CSRF_HEADER


class TestPublic:
    """Tests for root, metrics and CSRF issuance."""

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    @pytest.mark.asyncio
    async def test_metrics_exposed(self, client):
        await client.get("/")
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "geoadmin_http_requests_total" in response.text

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_anonymous_read_sets_no_cookie(self, client):
        response = await client.get("/admin/me")
        assert response.status_code == 401
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_csrf_token_stable_within_session(self, client, csrf):
        first = await csrf(client)
        second = await csrf(client)

        assert first == second
        assert client.cookies.get("geoadmin_session")


class TestAccountSessions:
    """Tests for end-user register / login / logout."""

    @pytest.mark.asyncio
    async def test_register_logs_in(self, client, csrf):
        token = await csrf(client)

        response = await client.post(
            "/register",
            json={
                "username": "alice",
                "email": "alice@example.com",
                "password": "secret123",
                "csrf_token": token,
            },
        )

        assert response.status_code == 201, response.text
        assert response.json()["user"]["username"] == "alice"
        me = await client.get("/me")
        assert me.json()["username"] == "alice"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, csrf, seed):
        await seed.account("alice")
        token = await csrf(client)

        response = await client.post(
            "/login", json={"username": "alice", "password": "wrong-pass", "csrf_token": token}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    @pytest.mark.asyncio
    async def test_login_without_csrf_is_forbidden(self, client, seed, password):
        await seed.account("alice")

        response = await client.post("/login", json={"username": "alice", "password": password})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_account_logout_keeps_admin(self, client, csrf, seed, admin_client, password):
        await seed.account("alice")
        token = await admin_client()
        login = await client.post(
            "/login", json={"username": "alice", "password": password, "csrf_token": token}
        )
        assert login.status_code == 200

        logout = await client.post("/logout", headers={CSRF_HEADER: token})

        assert logout.status_code == 200
        assert (await client.get("/me")).status_code == 401
        assert (await client.get("/admin/me")).status_code == 200


class TestAdminAuth:
    """Tests for the admin login gate."""

    @pytest.mark.asyncio
    async def test_admin_routes_require_login(self, client):
        response = await client.get("/admin/countries")

        assert response.status_code == 401
        assert response.json() == {"detail": "Not authenticated", "login_path": "/admin/login"}

    @pytest.mark.asyncio
    async def test_account_session_is_not_admin(self, client, csrf, seed, password):
        await seed.account("alice")
        token = await csrf(client)
        await client.post(
            "/login", json={"username": "alice", "password": password, "csrf_token": token}
        )

        assert (await client.get("/admin/dashboard")).status_code == 401

    @pytest.mark.asyncio
    async def test_login_rotates_session_cookie(self, client, csrf, seed, password):
        await seed.admin("root")
        token = await csrf(client)
        before = client.cookies.get("geoadmin_session")

        response = await client.post(
            "/admin/login", json={"username": "root", "password": password, "csrf_token": token}
        )

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "root"
        assert client.cookies.get("geoadmin_session") != before
        assert len(response.headers.get_list("set-cookie")) == 1
        assert (await client.get("/admin/me")).json()["username"] == "root"

    @pytest.mark.asyncio
    async def test_login_with_bad_csrf_is_forbidden(self, client, csrf, seed, password):
        await seed.admin("root")
        await csrf(client)

        response = await client.post(
            "/admin/login",
            json={"username": "root", "password": password, "csrf_token": "forged"},
        )

        assert response.status_code == 403
        assert (await client.get("/admin/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_admin_logout(self, client, admin_client):
        token = await admin_client()

        response = await client.post("/admin/logout", json={"csrf_token": token})

        assert response.status_code == 200
        assert (await client.get("/admin/me")).status_code == 401


class TestCountryRoutes:
    """Tests for /admin/countries."""

    @pytest.mark.asyncio
    async def test_create_list_delete(self, client, admin_client):
        token = await admin_client()

        created = await client.post(
            "/admin/countries", json={"name": "Malaysia", "csrf_token": token}
        )
        assert created.status_code == 201
        country_id = created.json()["id"]

        listed = await client.get("/admin/countries")
        assert listed.json() == [{"id": country_id, "name": "Malaysia"}]

        deleted = await client.delete(
            f"/admin/countries/{country_id}", headers={CSRF_HEADER: token}
        )
        assert deleted.status_code == 204
        assert (await client.get("/admin/geo/countries")).json() == []

    @pytest.mark.asyncio
    async def test_mutation_without_csrf_is_forbidden(self, client, admin_client):
        await admin_client()

        response = await client.post("/admin/countries", json={"name": "Malaysia"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_with_states_conflicts(self, client, admin_client, seed):
        token = await admin_client()
        country = await seed.country("Malaysia")
        await seed.state(country.id, "Selangor")

        response = await client.delete(
            f"/admin/countries/{country.id}", headers={CSRF_HEADER: token}
        )

        assert response.status_code == 409
        assert "state" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_blank_name_is_rejected(self, client, admin_client):
        token = await admin_client()

        response = await client.post("/admin/countries", json={"name": "   ", "csrf_token": token})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, client, admin_client, seed):
        token = await admin_client()
        await seed.country("Malaysia")

        response = await client.post(
            "/admin/countries", json={"name": "Malaysia", "csrf_token": token}
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_missing_country_is_404(self, client, admin_client):
        await admin_client()

        assert (await client.get("/admin/countries/999")).status_code == 404


class TestStateRoutes:
    """Tests for /admin/states and the geo lookups."""

    @pytest.mark.asyncio
    async def test_create_and_lookup_by_country(self, client, admin_client, seed):
        token = await admin_client()
        country = await seed.country("Malaysia")

        created = await client.post(
            "/admin/states",
            json={"country_id": country.id, "name": "Selangor", "csrf_token": token},
        )
        assert created.status_code == 201

        lookup = await client.get("/admin/geo/states", params={"country_id": country.id})
        assert [s["name"] for s in lookup.json()] == ["Selangor"]

        joined = await client.get("/admin/states")
        assert joined.json()[0]["country_name"] == "Malaysia"

    @pytest.mark.asyncio
    async def test_delete_in_use_state_conflicts(self, client, admin_client, seed):
        token = await admin_client()
        country = await seed.country("Malaysia")
        state = await seed.state(country.id, "Selangor")
        await seed.account("alice", country_id=country.id, state_id=state.id)

        response = await client.delete(f"/admin/states/{state.id}", headers={CSRF_HEADER: token})

        assert response.status_code == 409


class TestUserRoutes:
    """Tests for /admin/users."""

    @pytest.mark.asyncio
    async def test_listing_with_search(self, client, admin_client, seed):
        await admin_client()
        await seed.accounts(["alice", "bob", "smith", "jsmith"])

        response = await client.get(
            "/admin/users",
            params={"search": "smith", "order_column": "username", "order_direction": "asc"},
        )

        body = response.json()
        assert response.status_code == 200
        assert [r["username"] for r in body["rows"]] == ["jsmith", "smith"]
        assert body["total_count"] == 4
        assert body["filtered_count"] == 2
        assert body["limit"] == 10

    @pytest.mark.asyncio
    async def test_listing_ignores_injected_order(self, client, admin_client, seed):
        await admin_client()
        await seed.accounts(["alice", "bob"])

        response = await client.get(
            "/admin/users", params={"order_column": "id; DROP TABLE accounts"}
        )

        assert response.status_code == 200
        assert [r["username"] for r in response.json()["rows"]] == ["bob", "alice"]

    @pytest.mark.asyncio
    async def test_datatable_shape(self, client, admin_client, seed):
        await admin_client()
        await seed.accounts(["alice", "bob", "carol"])

        response = await client.get(
            "/admin/users/datatable",
            params={
                "draw": 3,
                "start": 0,
                "length": 2,
                "search[value]": "",
                "order[0][column]": 1,
                "order[0][dir]": "asc",
            },
        )

        body = response.json()
        assert body["draw"] == 3
        assert body["recordsTotal"] == 3
        assert body["recordsFiltered"] == 3
        assert [r["username"] for r in body["data"]] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_huge_offset_returns_empty_page(self, client, admin_client, seed):
        await admin_client()
        await seed.accounts(["alice", "bob"])

        listing = await client.get("/admin/users", params={"offset": str(10**19)})
        table = await client.get("/admin/users/datatable", params={"start": str(10**19)})

        assert listing.status_code == 200
        assert listing.json()["rows"] == []
        assert listing.json()["total_count"] == 2
        assert table.status_code == 200
        assert table.json()["data"] == []
        assert table.json()["recordsTotal"] == 2

    @pytest.mark.asyncio
    async def test_overlong_search_is_truncated(self, client, admin_client, seed):
        await admin_client()
        await seed.accounts(["alice", "bob"])

        listing = await client.get("/admin/users", params={"search": "x" * 300})
        table = await client.get("/admin/users/datatable", params={"search[value]": "x" * 300})

        assert listing.status_code == 200
        assert listing.json()["filtered_count"] == 0
        assert table.status_code == 200
        assert table.json()["recordsFiltered"] == 0

    @pytest.mark.asyncio
    async def test_create_update_delete(self, client, admin_client, seed):
        token = await admin_client()
        country = await seed.country("Malaysia")
        state = await seed.state(country.id, "Selangor")

        created = await client.post(
            "/admin/users",
            json={
                "username": "alice",
                "email": "alice@example.com",
                "password": "secret123",
                "address": "1 Jalan",
                "country_id": country.id,
                "state_id": state.id,
                "csrf_token": token,
            },
        )
        assert created.status_code == 201, created.text
        user = created.json()
        assert user["state_name"] == "Selangor"
        assert "password" not in user and "password_hash" not in user

        updated = await client.put(
            f"/admin/users/{user['id']}",
            json={"username": "alice", "email": "new@example.com", "csrf_token": token},
        )
        assert updated.status_code == 200
        assert updated.json()["email"] == "new@example.com"
        assert updated.json()["country_id"] is None

        deleted = await client.delete(f"/admin/users/{user['id']}", headers={CSRF_HEADER: token})
        assert deleted.status_code == 204
        assert (await client.get(f"/admin/users/{user['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_mismatched_state_is_422(self, client, admin_client, seed):
        token = await admin_client()
        malaysia = await seed.country("Malaysia")
        thailand = await seed.country("Thailand")
        phuket = await seed.state(thailand.id, "Phuket")

        response = await client.post(
            "/admin/users",
            json={
                "username": "alice",
                "email": "alice@example.com",
                "password": "secret123",
                "country_id": malaysia.id,
                "state_id": phuket.id,
                "csrf_token": token,
            },
        )

        assert response.status_code == 422
        assert response.json()["field"] == "state_id"

    @pytest.mark.asyncio
    async def test_validation_error_does_not_echo_password(self, client, admin_client):
        token = await admin_client()

        response = await client.post(
            "/admin/users",
            json={
                "username": "alice",
                "email": "not-an-email",
                "password": "hunter2-secret",
                "csrf_token": token,
            },
        )

        assert response.status_code == 422
        assert "hunter2-secret" not in response.text


class TestStoreOutage:
    @pytest.mark.asyncio
    async def test_session_store_down_is_503(self, client, admin_client, store):
        await admin_client()
        store.fail = True

        response = await client.get("/admin/countries")

        assert response.status_code == 503
