# Overview: Pytest coverage for registration, login, sessions and shop membership routes.

import pytest
from app.models import SessionToken, User
from app.services import session_service
from app.services.auth_service import create_user, hash_password, verify_password
from app.errors import ValidationError
from conftest import PASSWORD, auth_headers


def _register(client, **overrides):
    body = {"name": "New Person", "email": "new@shop.test", "password": "Secret123", "role": "Owner"}
    body.update(overrides)
    return client.post('/api/auth/register', json=body)


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("Secret123", rounds=4)
        assert hashed != "Secret123"
        assert verify_password("Secret123", hashed)
        assert not verify_password("Secret124", hashed)
        assert not verify_password("Secret123", "not-a-bcrypt-hash")

    @pytest.mark.parametrize("password", ["short1", "lettersonly", "12345678"])
    def test_weak_passwords(self, password):
        with pytest.raises(ValidationError):
            hash_password(password, rounds=4)


class TestRegister:

    def test_owner_registers(self, client, db_session):
        response = _register(client, email="  Boss@Shop.TEST ")

        assert response.status_code == 201
        assert response.json["token"]
        assert response.json["user"]["email"] == "boss@shop.test"
        assert response.json["user"]["status"] == "new"

    def test_cashier_joins_with_shop_code(self, client, db_session, shop):
        response = _register(client, role="Cashier", shop_code=shop.secret_code)

        assert response.status_code == 201
        assert response.json["user"]["status"] == "joined"

        me = client.get('/api/auth/me', headers=auth_headers(response.json["token"]))
        assert [s["id"] for s in me.json["shops"]] == [shop.id]
        assert "secret_code" not in me.json["shops"][0]

    def test_bad_shop_code_creates_nothing(self, client, db_session):
        response = _register(client, role="Manager", shop_code="000000")

        assert response.status_code == 404
        assert db_session.query(User).filter_by(email="new@shop.test").count() == 0

    def test_duplicate_email(self, client, db_session, owner):
        response = _register(client, email="owner@shop.test")
        assert response.status_code == 409

    @pytest.mark.parametrize("overrides", [
        {"role": "Admin"},
        {"email": "not-an-email"},
        {"password": "weak"},
        {"name": ""},
    ])
    def test_invalid_registration(self, client, db_session, overrides):
        response = _register(client, **overrides)
        assert response.status_code == 400
        assert response.json["error"] == "ValidationError"


class TestLogin:

    def test_login_and_me(self, client, db_session, cashier):
        response = client.post('/api/auth/login', json={"email": "CASHIER@shop.test", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json["user"]["id"] == cashier.id
        assert response.json["expires_at"].endswith("Z")

        me = client.get('/api/auth/me', headers=auth_headers(response.json["token"]))
        assert me.status_code == 200
        assert me.json["user"]["role"] == "Cashier"

    @pytest.mark.parametrize("email,password", [
        ("cashier@shop.test", "WrongPass1"),
        ("nobody@shop.test", PASSWORD),
        ("", ""),
    ])
    def test_bad_credentials(self, client, db_session, cashier, email, password):
        response = client.post('/api/auth/login', json={"email": email, "password": password})
        assert response.status_code == 401
        assert response.json["message"] == "Invalid email or password"

    def test_inactive_user(self, client, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        response = client.post('/api/auth/login', json={"email": "cashier@shop.test", "password": PASSWORD})
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, db_session, cashier):
        _, token = session_service.create_session(cashier.id)

        assert client.post('/api/auth/logout', headers=auth_headers(token)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401
        assert db_session.query(SessionToken).filter_by(user_id=cashier.id).one().revoked_at is not None

    def test_token_is_stored_hashed(self, db_session, cashier):
        session, token = session_service.create_session(cashier.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer nope"}])
    def test_protected_route_needs_token(self, client, db_session, headers):
        response = client.get('/api/auth/me', headers=headers)
        assert response.status_code == 401
        assert response.json["error"] == "Unauthorized"


class TestShops:

    def test_owner_creates_shop(self, client, db_session, owner, headers_for):
        response = client.post('/api/shops', json={"name": "Zari Palace", "tax_percentage": "12.5"},
                               headers=headers_for(owner))

        assert response.status_code == 201
        shop = response.json["shop"]
        assert shop["tax_percentage"] == "12.50"
        assert len(shop["secret_code"]) == 6

    def test_non_owner_cannot_create(self, client, db_session, manager, headers_for):
        response = client.post('/api/shops', json={"name": "Nope"}, headers=headers_for(manager))
        assert response.status_code == 403
        assert response.json["required_roles"] == ["Owner"]

    def test_tax_percentage_bounds(self, client, db_session, owner, headers_for):
        response = client.post('/api/shops', json={"name": "Bad", "tax_percentage": "150"},
                               headers=headers_for(owner))
        assert response.status_code == 400

    def test_join_by_code(self, client, db_session, owner, headers_for):
        shop = client.post('/api/shops', json={"name": "Zari"}, headers=headers_for(owner)).json["shop"]
        newcomer = create_user("Late Joiner", "late@shop.test", PASSWORD, "Manager", bcrypt_rounds=4)
        headers = headers_for(newcomer)

        first = client.post('/api/shops/join', json={"secret_code": shop["secret_code"]}, headers=headers)
        again = client.post('/api/shops/join', json={"shop_code": shop["secret_code"]}, headers=headers)

        assert first.status_code == 200
        assert again.status_code == 409
        mine = client.get('/api/shops/my', headers=headers).json["shops"]
        assert [s["id"] for s in mine] == [shop["id"]]

    def test_owner_cannot_join_by_code(self, client, db_session, shop, other_shop, headers_for):
        response = client.post('/api/shops/join', json={"secret_code": shop.secret_code},
                               headers=headers_for(other_shop.owner))
        assert response.status_code == 403

    def test_update_shop(self, client, db_session, shop, owner, manager, headers_for):
        response = client.patch(f'/api/shops/{shop.id}', json={"tax_percentage": "5", "city": "Madurai"},
                                headers=headers_for(owner))
        assert response.status_code == 200
        assert response.json["shop"]["tax_percentage"] == "5.00"
        assert response.json["shop"]["city"] == "Madurai"

        unknown = client.patch(f'/api/shops/{shop.id}', json={"owner_id": manager.id},
                               headers=headers_for(owner))
        assert unknown.status_code == 400

        as_manager = client.patch(f'/api/shops/{shop.id}', json={"city": "X"}, headers=headers_for(manager))
        assert as_manager.status_code == 403
