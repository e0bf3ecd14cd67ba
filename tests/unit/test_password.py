"""Unit tests for password hashing."""

from citytrees.kernel.identity.password import (
    PasswordHasher,
    hash_password,
    verify_password,
)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_is_salted(self):
        password = "TestPassword123"
        hash1 = PasswordHasher.hash(password)
        hash2 = PasswordHasher.hash(password)

        assert hash1 != hash2
        assert hash1.startswith("$2b$")

    def test_verify(self):
        hashed = hash_password("TestPassword123")

        assert verify_password("TestPassword123", hashed) is True
        assert verify_password("WrongPassword", hashed) is False

    def test_malformed_hash_never_matches(self):
        assert PasswordHasher.verify("TestPassword123", "not-a-bcrypt-hash") is False

    def test_long_passwords_are_accepted(self):
        password = "Aa1" + "x" * 100
        assert verify_password(password, hash_password(password)) is True
