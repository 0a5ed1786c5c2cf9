import pytest

from portier.auth.allowlist import EmailAllowList


@pytest.mark.unit
class TestEmailAllowList:
    def test_subdomain_with_suffix_allowed(self) -> None:
        assert EmailAllowList("example.com").allows("user@sub.example.com") is True

    def test_not_an_email(self) -> None:
        assert EmailAllowList("example.com").allows("not-an-email") is False

    def test_wrong_suffix(self) -> None:
        assert EmailAllowList("example.com").allows("user@example.org") is False

    def test_empty_suffix_allows_any_valid_address(self) -> None:
        allow = EmailAllowList()
        assert allow("someone@anywhere.io") is True
        assert allow("someone@") is False

    @pytest.mark.parametrize(
        "email",
        ["", "@example.com", "user@-example.com", "user@example-.com", "us er@example.com", "user@example.com\n"],
    )
    def test_invalid_syntax(self, email: str) -> None:
        assert EmailAllowList("example.com")(email) is False

    def test_special_local_part_characters(self) -> None:
        assert EmailAllowList("example.com")("a.b+tag!#$%&'*/=?^_`{|}~-@example.com") is True
