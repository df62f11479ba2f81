import httpx
import pytest

from infrastructure.identity import IdentityProviderClient, UserIdentity, extract_bearer_token

BASE_URL = "https://auth.example.org"
API_KEY = "public-anon-key"


def make_client(handler):
    return IdentityProviderClient(
        base_url=BASE_URL,
        api_key=API_KEY,
        timeout=2.0,
        transport=httpx.MockTransport(handler)
    )


class TestExtractBearerToken:

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc.def", "abc.def"),
        ("Bearer ", None),
        ("bearer abc", None),
        ("Basic abc", None),
        ("", None),
        (None, None),
    ])
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestGetUser:

    def test_live_session(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json={
                "id": "u-1", "email": "a@example.org", "role": "authenticated", "app_metadata": {"provider": "email"}
            })

        identity = make_client(handler).get_user("tok")

        assert identity == UserIdentity(
            id="u-1", email="a@example.org", role="authenticated", app_metadata={"provider": "email"}
        )
        assert seen == {"url": f"{BASE_URL}/auth/v1/user", "auth": "Bearer tok", "apikey": API_KEY}

    @pytest.mark.parametrize("status", [401, 403, 404, 500, 503])
    def test_non_200_is_no_identity(self, status):
        client = make_client(lambda request: httpx.Response(status, json={"msg": "nope"}))

        assert client.get_user("tok") is None

    def test_malformed_body_is_no_identity(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))

        assert client.get_user("tok") is None

    def test_body_without_id_is_no_identity(self):
        client = make_client(lambda request: httpx.Response(200, json={"email": "a@example.org"}))

        assert client.get_user("tok") is None

    def test_transport_error_is_no_identity(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert make_client(handler).get_user("tok") is None

    def test_timeout_is_no_identity(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        assert make_client(handler).get_user("tok") is None

    def test_empty_token_skips_request(self):
        def handler(request):
            raise AssertionError("should not be called")

        assert make_client(handler).get_user("") is None


def test_claims():
    identity = UserIdentity(id="u-1", email="a@example.org")

    assert identity.to_claims() == {"sub": "u-1", "role": "authenticated", "email": "a@example.org"}


def test_ping():
    client = make_client(
        lambda request: httpx.Response(200 if request.url.path == "/auth/v1/health" else 404)
    )

    assert client.ping() is True
