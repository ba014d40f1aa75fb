import pytest

from tenantgate.auth.passwords import hash_password, verify_password


@pytest.mark.unit
class TestPasswords:
    def test_hash_is_argon2id_and_salted(self) -> None:
        first = hash_password("correct-horse")
        second = hash_password("correct-horse")
        assert first.startswith("$argon2id$")
        assert first != second

    def test_verify(self) -> None:
        hashed = hash_password("correct-horse")
        assert verify_password("correct-horse", hashed) is True
        assert verify_password("battery-staple", hashed) is False

    @pytest.mark.parametrize("stored", [None, "", "not-a-hash"])
    def test_missing_or_corrupt_hash_never_matches(self, stored: str | None) -> None:
        assert verify_password("anything", stored) is False

    def test_empty_password_never_matches(self) -> None:
        assert verify_password("", hash_password("x")) is False

    def test_empty_password_cannot_be_hashed(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            hash_password("")
