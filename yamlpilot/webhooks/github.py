"""GitHub REST API client for file contents, pull request files, and diffs."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from yamlpilot.config import Settings
from yamlpilot.retry import retry_with_backoff

logger = logging.getLogger(__name__)

_RAW_MEDIA_TYPE = "application/vnd.github.raw"
_DIFF_MEDIA_TYPE = "application/vnd.github.diff"
_JSON_MEDIA_TYPE = "application/vnd.github+json"

_PER_PAGE = 100
_MAX_PAGES = 30  # GitHub caps PR file listings at 3000 files


class GitHubError(Exception):
    """A GitHub API call failed."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """Async GitHub REST client.

    A token is optional for public repositories, but unauthenticated calls
    are limited to 60 requests per hour.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        headers = {
            "Accept": _JSON_MEDIA_TYPE,
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "yamlpilot",
        }
        if settings.github_token:
            headers["Authorization"] = f"Bearer {settings.github_token}"
        self._client = client or httpx.AsyncClient(
            base_url=settings.github_api_url.rstrip("/"),
            timeout=settings.github_timeout_seconds,
        )
        self._client.headers.update(headers)

    @retry_with_backoff(max_retries=3, base_delay=1.0, max_delay=30.0)
    async def _get(self, path: str, accept: str = _JSON_MEDIA_TYPE, **params: Any) -> httpx.Response:
        response = await self._client.get(path, headers={"Accept": accept}, params=params or None)
        response.raise_for_status()
        return response

    async def _request(self, path: str, accept: str = _JSON_MEDIA_TYPE, **params: Any) -> httpx.Response:
        try:
            return await self._get(path, accept, **params)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("GitHub GET %s failed: HTTP %d", path, status)
            raise GitHubError(status, f"GitHub API returned HTTP {status}") from e
        except httpx.HTTPError as e:
            logger.warning("GitHub GET %s failed: %s", path, type(e).__name__)
            raise GitHubError(0, f"GitHub API unreachable ({type(e).__name__})") from e

    async def get_file_content(self, repository: str, path: str, ref: str = "") -> str:
        """Fetch a file's raw content at a ref (branch, tag, or SHA)."""
        params = {"ref": ref} if ref else {}
        response = await self._request(
            f"/repos/{repository}/contents/{quote(path)}", _RAW_MEDIA_TYPE, **params
        )
        try:
            return response.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise GitHubError(response.status_code, "File is not valid UTF-8") from e

    async def list_pull_request_files(self, repository: str, number: int) -> list[str]:
        """Paths changed by a pull request, excluding removed files."""
        files: list[str] = []
        for page in range(1, _MAX_PAGES + 1):
            response = await self._request(
                f"/repos/{repository}/pulls/{number}/files",
                per_page=_PER_PAGE,
                page=page,
            )
            try:
                batch = response.json()
            except ValueError as e:
                raise GitHubError(response.status_code, "Pull request file listing was not JSON") from e
            if not isinstance(batch, list):
                logger.warning("Unexpected PR files page for %s #%d: %s", repository, number, type(batch).__name__)
                raise GitHubError(response.status_code, "Pull request file listing was not a list")
            for entry in batch:
                if isinstance(entry, dict) and entry.get("status") != "removed" and entry.get("filename"):
                    files.append(entry["filename"])
            if len(batch) < _PER_PAGE:
                break
        return files

    async def get_pull_request_diff(self, repository: str, number: int) -> str:
        response = await self._request(f"/repos/{repository}/pulls/{number}", _DIFF_MEDIA_TYPE)
        return response.text

    async def close(self) -> None:
        await self._client.aclose()
