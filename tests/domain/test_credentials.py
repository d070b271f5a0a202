import pytest

from aiauth.domain.credentials import AuthDocument, Credential, CredentialKind
from aiauth.domain.exceptions import StoreDecodeError


def test_api_key_serialises_only_its_fields():
    cred = Credential.api_key("anthropic", "sk-test-key-123")

    assert cred.to_dict() == {"type": "api_key", "provider": "anthropic", "key": "sk-test-key-123"}


def test_oauth_serialises_without_empty_fields():
    cred = Credential.oauth("anthropic", "acc", "ref", 1234)

    assert cred.to_dict() == {
        "type": "oauth",
        "provider": "anthropic",
        "access": "acc",
        "refresh": "ref",
        "expires": 1234,
    }


def test_token_with_email_round_trips():
    cred = Credential.bearer("anthropic", "tok", expires=99, email="me@example.com")

    assert Credential.from_dict(cred.to_dict()) == cred


def test_fields_from_other_kinds_are_rejected():
    with pytest.raises(ValueError):
        Credential(kind=CredentialKind.API_KEY, provider="openai", key="k", access="a")


def test_kind_accepts_plain_string():
    cred = Credential(kind="token", provider="openai", token="t")

    assert cred.kind is CredentialKind.TOKEN


def test_document_keeps_profiles_of_unknown_type():
    raw = {
        "version": 1,
        "profiles": {
            "anthropic:default": {"type": "api_key", "provider": "anthropic", "key": "sk-good"},
            "bedrock:aws": {"type": "aws_sdk", "provider": "bedrock", "region": "us-east-1"},
        },
    }

    document = AuthDocument.from_dict(raw)

    assert list(document.profiles) == ["anthropic:default"]
    assert document.foreign_profiles == {"bedrock:aws": raw["profiles"]["bedrock:aws"]}
    assert document.to_dict() == raw


def test_from_dict_drops_fields_of_other_kinds():
    cred = Credential.from_dict({"type": "api_key", "provider": "openai", "key": "k", "token": "stale"})

    assert cred.token == ""
    assert cred.to_dict() == {"type": "api_key", "provider": "openai", "key": "k"}


def test_from_dict_rejects_non_numeric_expiry():
    with pytest.raises(StoreDecodeError):
        Credential.from_dict({"type": "token", "provider": "openai", "token": "t", "expires": "soon"})


@pytest.mark.parametrize(
    "expires, expected",
    [(0, False), (2_000, False), (999, True)],
)
def test_is_expired(expires, expected):
    cred = Credential.bearer("openai", "t", expires=expires)

    assert cred.is_expired(1_000) is expected


def test_secret_follows_kind():
    assert Credential.api_key("p", "k").secret == "k"
    assert Credential.bearer("p", "t").secret == "t"
    assert Credential.oauth("p", "a", "r", 0).secret == "a"


def test_document_passes_through_last_good_and_usage_stats():
    raw = {
        "version": 1,
        "profiles": {"anthropic:manual": {"type": "token", "provider": "anthropic", "token": "t"}},
        "lastGood": {"anthropic": "anthropic:manual"},
        "usageStats": {
            "anthropic:manual": {"lastUsed": "2026-01-01T00:00:00Z", "errorCount": 2, "cooldownUntil": 99},
        },
    }

    document = AuthDocument.from_dict(raw)

    assert document.usage_stats["anthropic:manual"]["lastUsed"] == "2026-01-01T00:00:00Z"
    assert document.to_dict() == raw


def test_document_omits_empty_optional_sections():
    assert AuthDocument().to_dict() == {"version": 1, "profiles": {}}


def test_document_rejects_non_object():
    with pytest.raises(StoreDecodeError):
        AuthDocument.from_dict(["not", "a", "document"])


def test_document_names_the_bad_profile():
    with pytest.raises(StoreDecodeError, match="broken"):
        AuthDocument.from_dict({"version": 1, "profiles": {"broken": {"type": "token", "provider": "x", "expires": "later"}}})


def test_document_rejects_usage_stats_entry_that_is_not_an_object():
    with pytest.raises(StoreDecodeError, match="anthropic:manual"):
        AuthDocument.from_dict({"version": 1, "profiles": {}, "usageStats": {"anthropic:manual": 5}})


def test_credential_decoder_still_rejects_unknown_type():
    with pytest.raises(StoreDecodeError):
        Credential.from_dict({"type": "password", "provider": "openai"})
