"""Unit tests for JWT token management."""

import uuid

from citytrees.kernel.identity.jwt import JWTManager


class TestJWTManager:

    def test_access_token_round_trip(self, jwt_manager):
        user_id = uuid.uuid4()
        token, exp, jti = jwt_manager.create_access_token(user_id, "a@example.com", ["MODERATOR", "BASIC"])

        payload = jwt_manager.verify_access_token(token)

        assert payload is not None
        assert payload.sub == str(user_id)
        assert payload.roles == ["BASIC", "MODERATOR"]
        assert payload.jti == jti

    def test_wrong_secret_rejected(self, jwt_manager):
        token, _, _ = jwt_manager.create_access_token(uuid.uuid4(), "a@example.com", ["BASIC"])
        other = JWTManager(secret_key="another-secret-key", algorithm="HS256")
        assert other.verify_access_token(token) is None

    def test_token_types_are_not_interchangeable(self, jwt_manager):
        user_id = uuid.uuid4()
        access, _, _ = jwt_manager.create_access_token(user_id, "a@example.com", ["BASIC"])
        refresh, _, _ = jwt_manager.create_refresh_token(user_id)

        assert jwt_manager.verify_refresh_token(access) is None
        assert jwt_manager.verify_access_token(refresh) is None
        assert jwt_manager.verify_refresh_token(refresh).sub == str(user_id)

    def test_token_pair(self, jwt_manager):
        pair, refresh_exp = jwt_manager.create_token_pair(uuid.uuid4(), "a@example.com", ["BASIC"])
        assert pair.token_type == "bearer"
        assert 0 < pair.expires_in <= 30 * 60
        assert pair.access_token != pair.refresh_token

    def test_hash_token_is_stable(self):
        assert JWTManager.hash_token("abc") == JWTManager.hash_token("abc")
        assert JWTManager.hash_token("abc") != JWTManager.hash_token("abd")
