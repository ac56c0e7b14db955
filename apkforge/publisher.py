"""Publishes generated project sources to GitHub."""

import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from .errors import CommandError, PublicationFailure
from .models import PublishResult
from .runner import CommandRunner

logger = logging.getLogger(__name__)


class GitHubPublisher:
    """Creates a repository for the authenticated user and pushes a directory to it."""

    def __init__(
        self,
        runner: CommandRunner,
        token: Optional[str],
        username: Optional[str],
        api_url: str = "https://api.github.com",
        git_bin: str = "git",
        commit_author: str = "apkforge",
        commit_email: str = "apkforge@users.noreply.github.com",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.runner = runner
        self.token = token
        self.username = username
        self.api_url = api_url.rstrip("/")
        self.git_bin = git_bin
        self.commit_author = commit_author
        self.commit_email = commit_email
        self._client = client

    def _redact(self, text: str) -> str:
        return text.replace(self.token, "***") if self.token else text

    def _authenticated_url(self, clone_url: str) -> str:
        return clone_url.replace("https://", f"https://{self.username}:{self.token}@", 1)

    async def create_repository(self, name: str, description: str) -> PublishResult:
        request = {
            "url": f"{self.api_url}/user/repos",
            "json": {"name": name, "description": description, "private": False, "auto_init": False},
            "headers": {
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
            },
            "timeout": 30.0,
        }
        try:
            if self._client is not None:
                response = await self._client.post(**request)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(**request)
        except httpx.HTTPError as e:
            raise PublicationFailure(f"GitHub repository creation failed: {e}") from e

        if response.is_error:
            raise PublicationFailure(
                f"GitHub repository creation failed: {response.status_code} {response.text}"
            )
        try:
            data = response.json()
            return PublishResult(html_url=data["html_url"], clone_url=data["clone_url"])
        except (ValueError, KeyError, TypeError) as e:
            raise PublicationFailure(f"GitHub repository creation failed: malformed response {e!r}") from e

    async def push(self, project_dir: Union[str, Path], clone_url: str) -> None:
        git = self.git_bin
        identity = ["-c", f"user.name={self.commit_author}", "-c", f"user.email={self.commit_email}"]
        steps = [
            [git, "init", "-b", "main"],
            [git, "add", "."],
            [git, *identity, "commit", "-m", "Initial commit - Generated Flutter app"],
            [git, "remote", "add", "origin", self._authenticated_url(clone_url)],
            [git, "push", "origin", "main"],
        ]
        for command in steps:
            await self.runner.run(command, cwd=project_dir)

    async def publish(self, name: str, project_dir: Union[str, Path], description: str) -> PublishResult:
        """Create the repository and push ``project_dir``. Raises ``PublicationFailure``."""
        repo = await self.create_repository(name, description)
        logger.info("Created repository %s", repo.html_url)
        try:
            await self.push(project_dir, repo.clone_url)
        except CommandError as e:
            raise PublicationFailure(self._redact(f"GitHub push failed: {e}")) from None
        return repo
