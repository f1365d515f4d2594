import datetime as dt

import pytest

from clean_madurai.errors import CollaboratorError


def test_sign_up_then_sign_in(auth):
    created = auth.sign_up("  Ravi@Example.com ", "secret-pass")
    assert created.email == "ravi@example.com"
    signed_in = auth.sign_in("ravi@example.com", "secret-pass")
    assert signed_in.uid == created.uid
    assert signed_in.token_id != created.token_id


@pytest.mark.parametrize(
    "email, password, code",
    [
        ("", "secret-pass", "auth/missing-email"),
        ("a@b.co", "", "auth/missing-password"),
        ("not-an-email", "secret-pass", "auth/invalid-email"),
        ("a@b.co", "123", "auth/weak-password"),
    ],
)
def test_sign_up_rejects_bad_input(auth, email, password, code):
    with pytest.raises(CollaboratorError) as ex:
        auth.sign_up(email, password)
    assert ex.value.code == code


def test_duplicate_email(auth):
    auth.sign_up("dup@example.com", "secret-pass")
    with pytest.raises(CollaboratorError) as ex:
        auth.sign_up("DUP@example.com", "secret-pass")
    assert ex.value.code == "auth/email-already-in-use"


def test_wrong_password_and_lockout(auth):
    auth.sign_up("lock@example.com", "secret-pass")
    for _ in range(3):
        with pytest.raises(CollaboratorError) as ex:
            auth.sign_in("lock@example.com", "nope-nope")
        assert ex.value.code == "auth/invalid-credential"
    with pytest.raises(CollaboratorError) as ex:
        auth.sign_in("lock@example.com", "secret-pass")
    assert ex.value.code == "auth/too-many-requests"


def test_unknown_user(auth):
    with pytest.raises(CollaboratorError) as ex:
        auth.sign_in("ghost@example.com", "secret-pass")
    assert ex.value.code == "auth/invalid-credential"


def test_verify_and_revoke(auth):
    identity = auth.sign_up("tok@example.com", "secret-pass")
    assert auth.verify(identity.token).uid == identity.uid
    auth.sign_out(identity)
    auth.sign_out(identity)
    with pytest.raises(CollaboratorError) as ex:
        auth.verify(identity.token)
    assert ex.value.code == "auth/id-token-revoked"


def test_verify_rejects_garbage_token(auth):
    with pytest.raises(CollaboratorError) as ex:
        auth.verify("not.a.jwt")
    assert ex.value.code == "auth/invalid-credential"


def test_email_claim_blocks_a_racing_sign_up(auth, store):
    # Another sign-up claimed the email but has not written its credential yet.
    store.create("credential_emails", {"uid": "other-uid"}, doc_id="race@example.com")
    with pytest.raises(CollaboratorError) as ex:
        auth.sign_up("race@example.com", "secret-pass")
    assert ex.value.code == "auth/email-already-in-use"
    assert store.all("credentials") == []


def test_sign_up_claims_the_email(auth, store):
    identity = auth.sign_up("Claim@Example.com", "secret-pass")
    assert store.get("credential_emails", "claim@example.com") == {"uid": identity.uid}


def test_sign_out_purges_expired_revocations(auth, store):
    past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=1)
    store.create("revoked_tokens", {"uid": "u0", "revokedAt": past.isoformat(), "expiresAt": past.isoformat()}, doc_id="old-jti")

    identity = auth.sign_up("out@example.com", "secret-pass")
    auth.sign_out(identity)

    assert store.get("revoked_tokens", "old-jti") is None
    assert store.get("revoked_tokens", identity.token_id) is not None
    with pytest.raises(CollaboratorError) as ex:
        auth.verify(identity.token)
    assert ex.value.code == "auth/id-token-revoked"
