"""
GitHub source-control gateway (REST API v3).

Example:
    >>> scm = GitHubSourceControl(token="ghp_...", owner="acme", repo="shop")
    >>> result = scm.create_branch("hotfix/3f2a9c1b0d4e")
    >>> result.success or result.already_exists
    True
"""

import base64
import logging
from typing import Optional
from urllib.parse import quote

import requests

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS, GITHUB_ACCEPT_HEADER, GITHUB_API_URL
from ..exceptions import AlreadyExistsError, GatewayError, RejectedError, TransportFailure
from .base import ErrorKind, GatewayResult, SourceControlGateway, gateway_call
from .http import HttpTransport, raise_for_status

logger = logging.getLogger(__name__)


class GitHubSourceControl(SourceControlGateway):
    """
    Branches, file contents and pull requests through the GitHub REST API.

    Args:
        token: Personal access token or app installation token
        owner: Repository owner (user or organisation)
        repo: Repository name
        api_url: API root (GitHub Enterprise uses ``https://host/api/v3``)
        default_branch: Skip the repository lookup and use this branch
        timeout: Per-request timeout in seconds
        session: Pre-built ``requests.Session`` (tests)
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = GITHUB_API_URL,
        default_branch: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None
    ):
        self.owner = owner
        self.repo = repo
        self._default_branch = default_branch
        self.http = HttpTransport(
            api_url,
            headers={
                "Authorization": f"token {token}",
                "Accept": GITHUB_ACCEPT_HEADER,
            },
            timeout=timeout,
            session=session,
        )

    @property
    def repo_path(self) -> str:
        return f"repos/{self.owner}/{self.repo}"

    @property
    def default_branch(self) -> str:
        """
        Default branch of the repository, looked up once.

        Raises:
            TransportFailure: If the repository cannot be read
        """
        if self._default_branch is None:
            response = self.http.get(self.repo_path)
            raise_for_status(response, "get repository")
            branch = self.http.json(response, "get repository").get("default_branch")
            if not branch:
                raise TransportFailure(f"Repository {self.owner}/{self.repo} has no default branch")
            self._default_branch = branch
        return self._default_branch

    def _contents_path(self, path: str) -> str:
        return f"{self.repo_path}/contents/{quote(path.lstrip('/'))}"

    @gateway_call
    def create_branch(self, name: str) -> GatewayResult:
        base = self.default_branch
        ref_response = self.http.get(f"{self.repo_path}/git/ref/heads/{quote(base)}")
        raise_for_status(ref_response, f"get ref heads/{base}")
        base_sha = self.http.json(ref_response, "get ref")["object"]["sha"]

        response = self.http.send(
            "POST",
            f"{self.repo_path}/git/refs",
            json={"ref": f"refs/heads/{name}", "sha": base_sha},
        )
        raise_for_status(response, f"create branch {name}")

        logger.info(f"Created branch {name} from {base} at {base_sha[:7]}")
        return GatewayResult.ok({"branch": name, "base": base, "sha": base_sha})

    @gateway_call
    def get_file(self, path: str, ref: str) -> GatewayResult:
        response = self.http.get(self._contents_path(path), params={"ref": ref})
        raise_for_status(response, f"get file {path}@{ref}")
        body = self.http.json(response, "get file")

        if not isinstance(body, dict) or body.get("type") != "file":
            raise RejectedError(f"{path} is not a file")

        try:
            content = base64.b64decode(body.get("content", "")).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise RejectedError(f"{path} is not a UTF-8 text file") from e

        return GatewayResult.ok({"path": path, "ref": ref, "sha": body.get("sha"), "content": content})

    @gateway_call
    def update_file(self, path: str, branch: str, message: str, content: str) -> GatewayResult:
        current = self.http.get(self._contents_path(path), params={"ref": branch})
        raise_for_status(current, f"get file {path}@{branch}")
        file_sha = self.http.json(current, "get file").get("sha")

        response = self.http.send(
            "PUT",
            self._contents_path(path),
            json={
                "message": message,
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": branch,
                "sha": file_sha,
            },
        )
        raise_for_status(response, f"update file {path}@{branch}")
        commit_sha = (self.http.json(response, "update file").get("commit") or {}).get("sha")

        logger.info(f"Committed {path} to {branch}")
        return GatewayResult.ok({"path": path, "branch": branch, "commit_sha": commit_sha})

    @gateway_call
    def open_change_request(self, branch: str, title: str, description: str) -> GatewayResult:
        base = self.default_branch
        response = self.http.send(
            "POST",
            f"{self.repo_path}/pulls",
            json={"title": title, "head": branch, "base": base, "body": description},
        )

        try:
            raise_for_status(response, f"open pull request {branch} -> {base}")
        except AlreadyExistsError as e:
            existing = self._find_open_pull(branch)
            return GatewayResult.fail(ErrorKind.ALREADY_EXISTS, str(e), payload=existing)

        body = self.http.json(response, "open pull request")
        logger.info(f"Opened pull request #{body.get('number')} for {branch}")
        return GatewayResult.ok({"url": body.get("html_url"), "number": body.get("number")})

    def _find_open_pull(self, branch: str) -> dict:
        """Look up the open pull request for ``branch``; empty dict if unavailable."""
        try:
            response = self.http.get(
                f"{self.repo_path}/pulls",
                params={"head": f"{self.owner}:{branch}", "state": "open"},
            )
            raise_for_status(response, "list pull requests")
            pulls = self.http.json(response, "list pull requests")
        except GatewayError as e:
            logger.warning(f"Could not look up existing pull request for {branch}: {e}")
            return {}

        if not pulls:
            return {}
        return {"url": pulls[0].get("html_url"), "number": pulls[0].get("number")}
