import pytest
from jose import jwt

from sharehub.errors import MissingIdentity
from sharehub.services.identity import BearerIdentityResolver, Identity, require_identity


def bearer(**claims):
    return {"Authorization": "Bearer " + jwt.encode(claims, "whatever", algorithm="HS256")}


def test_token_subject_and_name():
    ident = BearerIdentityResolver().resolve(bearer(sub="U2", name="Mike", email="mike@uni.edu"))
    assert ident == Identity(user_id="U2", user_name="Mike", email="mike@uni.edu")


def test_name_falls_back_to_email():
    ident = BearerIdentityResolver().resolve(bearer(sub="U2", email="mike@uni.edu"))
    assert ident.user_name == "mike@uni.edu"


def test_lowercase_header_is_accepted():
    headers = {"authorization": bearer(sub="U9")["Authorization"]}
    assert BearerIdentityResolver().resolve(headers).user_id == "U9"


@pytest.mark.parametrize("header", ["Bearer not-a-jwt", "Bearer a.b.c", "Basic dXNlcjpwdw==", ""])
def test_unusable_credentials_resolve_to_nothing(header):
    assert BearerIdentityResolver().resolve({"Authorization": header}) is None


def test_token_without_subject_resolves_to_nothing():
    assert BearerIdentityResolver().resolve(bearer(name="No Sub")) is None


def test_body_identity_ignored_unless_enabled():
    body = {"userId": "U5", "userName": "Body User"}
    assert BearerIdentityResolver().resolve({}, body) is None
    assert BearerIdentityResolver(allow_body_fallback=True).resolve({}, body) == Identity("U5", "Body User")


def test_body_identity_defaults_name():
    ident = BearerIdentityResolver(allow_body_fallback=True).resolve({}, {"userId": "U5"})
    assert ident.user_name == "Unknown User"


def test_token_wins_over_body():
    resolver = BearerIdentityResolver(allow_body_fallback=True)
    ident = resolver.resolve(bearer(sub="U2", name="Mike"), {"userId": "U5"})
    assert ident.user_id == "U2"


def test_body_used_when_token_is_broken():
    resolver = BearerIdentityResolver(allow_body_fallback=True)
    ident = resolver.resolve({"Authorization": "Bearer garbage"}, {"userId": "U5", "userName": "Ann"})
    assert ident.user_id == "U5"


def test_require_identity():
    with pytest.raises(MissingIdentity):
        require_identity(None)
    assert require_identity(Identity("U1", "Jane")).user_id == "U1"
