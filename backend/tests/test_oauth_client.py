from datetime import datetime, timedelta, timezone

import pytest
from google.auth.exceptions import RefreshError, TransportError

from calsync.crud import crud_oauth_token
from calsync.services import oauth_client
from calsync.services.oauth_client import GoogleOAuthClient, decode_state, encode_state
from calsync.utils.errors import AuthExpired, AuthRequired, InvalidArgument, RemoteUnavailable

from google_mocks import DummyFlow, google_dummy_flow  # noqa: F401


def store_token(db, user_id, refresh_token="rt-stored", expired=True):
    delta = timedelta(hours=-1) if expired else timedelta(hours=1)
    return crud_oauth_token.save_token(
        db,
        user_id=user_id,
        access_token="old-at",
        refresh_token=refresh_token,
        token_type="Bearer",
        expiry=datetime.now(timezone.utc) + delta,
    )


def test_exchange_code_saves_tokens(db, google_dummy_flow):
    token = GoogleOAuthClient().exchange_code(db, 11, "code-123")

    assert google_dummy_flow.fetched_codes == ["code-123"]
    assert token.refresh_token == "rt"
    assert token.access_token == "at"
    assert GoogleOAuthClient().has_credentials(db, 11)
    assert not GoogleOAuthClient().has_credentials(db, 12)


def test_exchange_code_rejected(db, monkeypatch):
    class FailingFlow(DummyFlow):
        def fetch_token(self, code):
            raise ValueError("invalid_grant")

    monkeypatch.setattr(oauth_client, "_flow", lambda cfg, flow_cls=None: FailingFlow())

    with pytest.raises(AuthRequired):
        GoogleOAuthClient().exchange_code(db, 11, "bad")
    assert crud_oauth_token.get_token(db, 11) is None


def test_reconsent_without_refresh_token_keeps_stored_one(db, monkeypatch):
    store_token(db, 11, refresh_token="rt-first", expired=False)
    monkeypatch.setattr(
        oauth_client, "_flow", lambda cfg, flow_cls=None: DummyFlow(refresh_token=None)
    )

    token = GoogleOAuthClient().exchange_code(db, 11, "again")

    assert token.access_token == "at"
    assert token.refresh_token == "rt-first"


def test_missing_credential_is_auth_required(db):
    with pytest.raises(AuthRequired):
        GoogleOAuthClient().get_credentials(db, 99)


def test_valid_token_is_used_without_refresh(db, monkeypatch):
    store_token(db, 1, expired=False)

    def fail_refresh(self, request):
        raise AssertionError("refresh should not be called")

    monkeypatch.setattr(oauth_client.Credentials, "refresh", fail_refresh)

    creds = GoogleOAuthClient().get_credentials(db, 1)
    assert creds.token == "old-at"


def test_expired_token_is_refreshed_and_saved(db, monkeypatch):
    store_token(db, 1)

    def fake_refresh(self, request):
        self.token = "new-at"
        self.expiry = datetime.utcnow() + timedelta(hours=1)

    monkeypatch.setattr(oauth_client, "Request", lambda: object())
    monkeypatch.setattr(oauth_client.Credentials, "refresh", fake_refresh)

    creds = GoogleOAuthClient().get_credentials(db, 1)

    assert creds.token == "new-at"
    db.expire_all()
    stored = crud_oauth_token.get_token(db, 1)
    assert stored.access_token == "new-at"
    assert stored.refresh_token == "rt-stored"
    assert stored.expiry > datetime.now(timezone.utc)


def test_expired_token_without_refresh_token_is_auth_expired(db):
    store_token(db, 1, refresh_token=None)

    with pytest.raises(AuthExpired):
        GoogleOAuthClient().get_credentials(db, 1)


def test_rejected_refresh_is_auth_expired(db, monkeypatch):
    store_token(db, 1)

    def revoked(self, request):
        raise RefreshError("invalid_grant: Token has been expired or revoked.")

    monkeypatch.setattr(oauth_client, "Request", lambda: object())
    monkeypatch.setattr(oauth_client.Credentials, "refresh", revoked)

    with pytest.raises(AuthExpired):
        GoogleOAuthClient().get_credentials(db, 1)
    # the credential is kept; the user re-authorizes over it
    assert crud_oauth_token.get_token(db, 1) is not None


def test_refresh_network_failure_is_remote_unavailable(db, monkeypatch):
    store_token(db, 1)

    def offline(self, request):
        raise TransportError("connection reset")

    monkeypatch.setattr(oauth_client, "Request", lambda: object())
    monkeypatch.setattr(oauth_client.Credentials, "refresh", offline)

    with pytest.raises(RemoteUnavailable):
        GoogleOAuthClient().get_credentials(db, 1)


def test_authorization_url_carries_signed_state(google_dummy_flow):
    client = GoogleOAuthClient()
    url = client.authorization_url_for_user(7)

    state = url.split("state=", 1)[1]
    assert state.startswith("sig:")
    assert client.user_id_from_state(state) == 7


def test_state_round_trip():
    token = encode_state(42, "s3cret")
    assert decode_state(token, "s3cret") == 42


@pytest.mark.parametrize("state", ["", "42:web", "sig:not-base64", "sig:abc.def"])
def test_malformed_state_is_rejected(state):
    with pytest.raises(InvalidArgument):
        decode_state(state, "s3cret")


def test_state_signed_with_other_secret_is_rejected():
    token = encode_state(42, "s3cret")
    with pytest.raises(InvalidArgument):
        decode_state(token, "another")


def test_tampered_state_is_rejected():
    token = encode_state(42, "s3cret")
    other = encode_state(43, "s3cret")
    forged = token.split(".")[0] + "." + other.split(".")[1]
    with pytest.raises(InvalidArgument):
        decode_state(forged, "s3cret")


def test_expired_state_is_rejected(monkeypatch):
    token = encode_state(42, "s3cret")
    real_time = oauth_client.time.time
    monkeypatch.setattr(oauth_client.time, "time", lambda: real_time() + 3600)
    with pytest.raises(InvalidArgument):
        decode_state(token, "s3cret")


def test_token_about_to_expire_is_refreshed(db, monkeypatch):
    crud_oauth_token.save_token(
        db,
        user_id=1,
        access_token="old-at",
        refresh_token="rt-stored",
        token_type="Bearer",
        expiry=datetime.now(timezone.utc) + timedelta(seconds=60),
    )
    refreshes = []

    def fake_refresh(self, request):
        refreshes.append(request)
        self.token = "new-at"
        self.expiry = datetime.utcnow() + timedelta(hours=1)

    monkeypatch.setattr(oauth_client, "Request", lambda: object())
    monkeypatch.setattr(oauth_client.Credentials, "refresh", fake_refresh)

    creds = GoogleOAuthClient().get_credentials(db, 1)

    assert len(refreshes) == 1
    assert creds.valid
    db.expire_all()
    assert crud_oauth_token.get_token(db, 1).access_token == "new-at"
