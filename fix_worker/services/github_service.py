"""
GitHub Service
==============
Fetches current file contents from the GitHub contents API.

    GET https://api.github.com/repos/{owner}/{repo}/contents/{path}

Behaviour:
    - Leading "/" is stripped from the path
    - Content is base64-decoded to UTF-8 text
    - 404 or a reply without file content (e.g. a directory) → None
    - Any other HTTP or transport error → SourceHostError
"""
import base64
import binascii
import logging
from typing import Optional

import httpx

from fix_worker.core.errors import SourceHostError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubService:
    """Read-only client for repository file contents."""

    def __init__(self, http: Optional[httpx.AsyncClient] = None, timeout: float = 20.0) -> None:
        self._http = http
        self.timeout = timeout

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def get_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        token: Optional[str] = None,
    ) -> Optional[str]:
        """
        Return the decoded content of ``path``, or None when it does not exist.

        Raises
        ------
        SourceHostError
            On any failure other than not-found.
        """
        clean_path = path[1:] if path.startswith("/") else path
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "fix-worker",
        }
        if token:
            headers["Authorization"] = f"token {token}"

        url = f"{GITHUB_API_URL}/repos/{owner}/{repo}/contents/{clean_path}"
        http = await self._get_http()
        try:
            response = await http.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise SourceHostError(f"GitHub request for {clean_path} failed: {e}") from e

        if response.status_code == 404:
            logger.info("File %s not found in %s/%s", clean_path, owner, repo)
            return None
        if response.status_code >= 400:
            raise SourceHostError(
                f"GitHub returned HTTP {response.status_code} for {owner}/{repo}/{clean_path}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SourceHostError(f"GitHub returned a non-JSON body for {clean_path}: {e}") from e
        if not isinstance(data, dict) or not data.get("content"):
            return None

        try:
            content = base64.b64decode(data["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SourceHostError(f"Could not decode content of {clean_path}: {e}") from e

        logger.info("Fetched %s from %s/%s (%d chars)", clean_path, owner, repo, len(content))
        return content
