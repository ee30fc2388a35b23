"""
Tests for the GitHub source-control gateway against a fake HTTP session.
"""
import base64
import json

import pytest
import requests

from hotfix_sentinel.gateway import ErrorKind, GitHubSourceControl

API = "https://api.github.com/repos/acme/shop"


def make_response(status: int, body=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body if body is not None else {}).encode("utf-8")
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Routes requests to canned responses keyed by (method, url)."""

    def __init__(self, routes):
        self.routes = routes
        self.headers = {}
        self.auth = None
        self.calls = []

    def _respond(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        route = self.routes[(method, url)]
        if isinstance(route, Exception):
            raise route
        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]
        return route

    def get(self, url, params=None, timeout=None):
        return self._respond("GET", url, params=params)

    def request(self, method, url, json=None, timeout=None):
        return self._respond(method, url, json=json)

    def close(self):
        pass

    def count(self, method, url):
        return sum(1 for m, u, _ in self.calls if (m, u) == (method, url))


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("hotfix_sentinel.retry.time.sleep", lambda seconds: None)


def _scm(routes) -> GitHubSourceControl:
    session = FakeSession(routes)
    return GitHubSourceControl(token="ghp_secrettokenvalue0123456789", owner="acme", repo="shop", session=session)


def test_auth_headers() -> None:
    """Test the token and API version headers are set on the session."""
    scm = _scm({})

    assert scm.http.session.headers["Authorization"] == "token ghp_secrettokenvalue0123456789"
    assert "github" in scm.http.session.headers["Accept"]


def test_default_branch_looked_up_once() -> None:
    scm = _scm({("GET", API): make_response(200, {"default_branch": "trunk"})})

    assert scm.default_branch == "trunk"
    assert scm.default_branch == "trunk"
    assert scm.http.session.count("GET", API) == 1


def test_create_branch() -> None:
    """Test a branch is created from the default branch head."""
    scm = _scm({
        ("GET", API): make_response(200, {"default_branch": "main"}),
        ("GET", f"{API}/git/ref/heads/main"): make_response(200, {"object": {"sha": "abc1234def"}}),
        ("POST", f"{API}/git/refs"): make_response(201, {"ref": "refs/heads/hotfix/k1"}),
    })

    result = scm.create_branch("hotfix/k1")

    assert result.success
    assert result.payload == {"branch": "hotfix/k1", "base": "main", "sha": "abc1234def"}
    _, _, kwargs = scm.http.session.calls[-1]
    assert kwargs["json"] == {"ref": "refs/heads/hotfix/k1", "sha": "abc1234def"}


def test_create_branch_already_exists() -> None:
    scm = GitHubSourceControl(
        token="t", owner="acme", repo="shop", default_branch="main",
        session=FakeSession({
            ("GET", f"{API}/git/ref/heads/main"): make_response(200, {"object": {"sha": "abc"}}),
            ("POST", f"{API}/git/refs"): make_response(422, {"message": "Reference already exists"}),
        }),
    )

    result = scm.create_branch("hotfix/k1")

    assert result.already_exists


def test_get_file_decodes_content() -> None:
    content = "print('hi')\n"
    scm = _scm({
        ("GET", f"{API}/contents/app/main.py"): make_response(200, {
            "type": "file",
            "sha": "f1",
            "content": base64.b64encode(content.encode()).decode(),
        }),
    })

    result = scm.get_file("app/main.py", "main")

    assert result.success
    assert result.payload["content"] == content
    assert scm.http.session.calls[0][2]["params"] == {"ref": "main"}


def test_get_file_not_found() -> None:
    scm = _scm({("GET", f"{API}/contents/missing.py"): make_response(404, {"message": "Not Found"})})

    result = scm.get_file("missing.py", "main")

    assert result.error_kind == ErrorKind.NOT_FOUND


def test_get_file_directory_rejected() -> None:
    scm = _scm({("GET", f"{API}/contents/app"): make_response(200, [{"type": "file", "name": "a.py"}])})

    result = scm.get_file("app", "main")

    assert result.error_kind == ErrorKind.REJECTED


def test_update_file_commits_base64_with_sha() -> None:
    scm = _scm({
        ("GET", f"{API}/contents/app.py"): make_response(200, {"type": "file", "sha": "old-sha", "content": ""}),
        ("PUT", f"{API}/contents/app.py"): make_response(200, {"commit": {"sha": "new-commit"}}),
    })

    result = scm.update_file("app.py", "hotfix/k1", "Guard null", "x = 1\n")

    assert result.payload["commit_sha"] == "new-commit"
    body = scm.http.session.calls[-1][2]["json"]
    assert body["sha"] == "old-sha"
    assert body["branch"] == "hotfix/k1"
    assert base64.b64decode(body["content"]).decode() == "x = 1\n"


def test_open_change_request() -> None:
    scm = GitHubSourceControl(
        token="t", owner="acme", repo="shop", default_branch="main",
        session=FakeSession({
            ("POST", f"{API}/pulls"): make_response(201, {"html_url": "https://github.com/acme/shop/pull/5", "number": 5}),
        }),
    )

    result = scm.open_change_request("hotfix/k1", "Hotfix: NPE", "body")

    assert result.payload == {"url": "https://github.com/acme/shop/pull/5", "number": 5}
    assert scm.http.session.calls[0][2]["json"]["base"] == "main"


def test_open_change_request_existing_pull() -> None:
    """Test a duplicate pull request reports the open one."""
    scm = GitHubSourceControl(
        token="t", owner="acme", repo="shop", default_branch="main",
        session=FakeSession({
            ("POST", f"{API}/pulls"): make_response(422, {
                "message": "Validation Failed",
                "errors": [{"message": "A pull request already exists for acme:hotfix/k1."}],
            }),
            ("GET", f"{API}/pulls"): make_response(200, [{"html_url": "https://github.com/acme/shop/pull/4", "number": 4}]),
        }),
    )

    result = scm.open_change_request("hotfix/k1", "Hotfix: NPE", "body")

    assert result.already_exists
    assert result.payload["url"] == "https://github.com/acme/shop/pull/4"
    assert scm.http.session.calls[-1][2]["params"] == {"head": "acme:hotfix/k1", "state": "open"}


def test_unauthorized_is_rejected() -> None:
    scm = _scm({("GET", API): make_response(401, {"message": "Bad credentials"})})

    result = scm.create_branch("hotfix/k1")

    assert result.error_kind == ErrorKind.REJECTED
    assert "Bad credentials" in result.reason


def test_server_errors_retried_then_transport_failure() -> None:
    """Test 5xx responses on reads are retried before failing."""
    scm = _scm({("GET", f"{API}/contents/app.py"): make_response(503, {"message": "unavailable"})})

    result = scm.get_file("app.py", "main")

    assert result.error_kind == ErrorKind.TRANSPORT_FAILURE
    assert scm.http.session.count("GET", f"{API}/contents/app.py") == 3


def test_write_connection_error_sent_once() -> None:
    """Test writes are never retried."""
    scm = GitHubSourceControl(
        token="t", owner="acme", repo="shop", default_branch="main",
        session=FakeSession({("POST", f"{API}/pulls"): requests.ConnectionError("connection reset")}),
    )

    result = scm.open_change_request("hotfix/k1", "t", "b")

    assert result.error_kind == ErrorKind.TRANSPORT_FAILURE
    assert scm.http.session.count("POST", f"{API}/pulls") == 1
