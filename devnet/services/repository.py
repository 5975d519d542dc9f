"""Repository version resolution for repository-backed services.

The registry does not clone or build anything; it only needs, for each
repository-backed service, the concrete version (``${version}``) and
repository name (``${repoName}``) to substitute into directory templates.

Resolvers:
    - StaticRepositoryResolver: pinned default versions, no I/O
    - GitHubRepositoryResolver: latest GitHub release through httpx

Both share a ``RepositoryVersionCache`` scoped to one registry construction,
so a repository is looked up at most once per run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from urllib.parse import urlsplit

import httpx

from devnet.core.config import get_settings
from devnet.core.constants import (
    DEFAULT_GIT_URLS,
    DEFAULT_REPO_NAMES,
    DEFAULT_VERSIONS,
    ServiceType,
)
from devnet.core.exceptions import RepositoryResolutionError
from devnet.core.logging import get_logger
from devnet.schemas.services import Repository, RepositoryPackage

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = [
    "GitHubRepositoryResolver",
    "RepositoryResolver",
    "RepositoryVersionCache",
    "ResolvedRepository",
    "StaticRepositoryResolver",
    "parse_git_url",
    "to_package",
]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedRepository:
    """Concrete repository coordinates substituted into config templates."""

    clone_repo: str
    commitish: str
    repo_name: str

    def placeholders(self) -> dict[str, str]:
        return {"version": self.commitish, "repoName": self.repo_name}


@runtime_checkable
class RepositoryResolver(Protocol):
    """Resolves a package descriptor into concrete repository coordinates."""

    async def resolve(
        self, package: RepositoryPackage, service_type: ServiceType
    ) -> ResolvedRepository:
        """Return the version tag and repository name of ``package``.

        Raises:
            RepositoryResolutionError: If no version can be determined
        """
        ...


@dataclass
class RepositoryVersionCache:
    """Latest-version lookups memoized for one registry construction."""

    _versions: dict[str, str] = field(default_factory=dict)

    def get(self, clone_repo: str) -> str | None:
        return self._versions.get(clone_repo)

    def set(self, clone_repo: str, version: str) -> None:
        self._versions[clone_repo] = version

    def __contains__(self, clone_repo: object) -> bool:
        return clone_repo in self._versions

    def __len__(self) -> int:
        return len(self._versions)


def parse_git_url(url: str) -> tuple[str, str | None]:
    """Split ``https://host/org/repo.git#v1.2.3`` into URL and commitish."""
    base, sep, commitish = url.partition("#")
    return base, (commitish if sep and commitish else None)


def _repo_name_from_url(url: str) -> str:
    path = urlsplit(url).path.rstrip("/")
    name = path.rsplit("/", 1)[-1]
    return name.removesuffix(".git")


def to_package(repository: Repository | None, service_type: ServiceType) -> RepositoryPackage:
    """Normalize a repository declaration into a package descriptor.

    A plain string is a directory template; the clone URL then defaults to
    the service kind's upstream repository.
    """
    if repository is None:
        return RepositoryPackage(clone="ifmissing")
    if isinstance(repository, str):
        return RepositoryPackage(directory=repository, clone="ifmissing", patch=True)
    return repository


def _coordinates(
    package: RepositoryPackage, service_type: ServiceType
) -> tuple[str, str | None, str]:
    """Return (clone url, explicit commitish, repository name) of a package."""
    default_url = DEFAULT_GIT_URLS.get(service_type)
    clone_repo = package.clone_repo or default_url
    if not clone_repo:
        raise RepositoryResolutionError(
            f"No clone URL for service type '{service_type}'",
            details={"type": str(service_type)},
        )
    clone_repo, url_commitish = parse_git_url(clone_repo)
    commitish = package.commitish or url_commitish
    repo_name = (
        package.git_hub_repo_name
        or DEFAULT_REPO_NAMES.get(service_type)
        or _repo_name_from_url(clone_repo)
    )
    return clone_repo, commitish, repo_name


class StaticRepositoryResolver:
    """Resolves versions from an explicit commitish or a pinned default."""

    def __init__(
        self,
        versions: Mapping[ServiceType, str] | None = None,
        cache: RepositoryVersionCache | None = None,
    ) -> None:
        self._versions = dict(DEFAULT_VERSIONS if versions is None else versions)
        self.cache = cache or RepositoryVersionCache()

    async def resolve(
        self, package: RepositoryPackage, service_type: ServiceType
    ) -> ResolvedRepository:
        clone_repo, commitish, repo_name = _coordinates(package, service_type)
        if not commitish:
            commitish = self.cache.get(clone_repo) or self._versions.get(service_type)
            if not commitish:
                raise RepositoryResolutionError(
                    f"No pinned version for service type '{service_type}'",
                    details={"type": str(service_type), "clone_repo": clone_repo},
                )
            # explicit versions are never cached
            self.cache.set(clone_repo, commitish)
        return ResolvedRepository(clone_repo=clone_repo, commitish=commitish, repo_name=repo_name)


class GitHubRepositoryResolver:
    """Resolves missing versions to the latest GitHub release tag.

    Uses ``GET /repos/{owner}/{repo}/releases/latest``. An explicit
    commitish (package field or ``#suffix`` of the clone URL) always wins.
    """

    def __init__(
        self,
        *,
        cache: RepositoryVersionCache | None = None,
        client: httpx.AsyncClient | None = None,
        api_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self.cache = cache or RepositoryVersionCache()
        self._client = client
        self._api_url = (api_url or settings.github_api_url).rstrip("/")
        if token is None and settings.github_token is not None:
            token = settings.github_token.get_secret_value()
        self._token = token
        self._timeout = httpx.Timeout(timeout or settings.repository_timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def latest_version(self, clone_repo: str) -> str:
        """Return the latest release tag of a GitHub repository.

        Raises:
            RepositoryResolutionError: If the repository is not on GitHub or
                the API call fails
        """
        cached = self.cache.get(clone_repo)
        if cached:
            return cached

        parts = urlsplit(clone_repo)
        segments = [s for s in parts.path.split("/") if s]
        if parts.hostname != "github.com" or len(segments) < 2:
            raise RepositoryResolutionError(
                f"Unable to retrieve repository latest version (repo={clone_repo})",
                details={"clone_repo": clone_repo},
            )
        owner, repo = segments[0], segments[1].removesuffix(".git")
        url = f"{self._api_url}/repos/{owner}/{repo}/releases/latest"

        try:
            if self._client is not None:
                response = await self._client.get(url, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, headers=self._headers())
            response.raise_for_status()
            tag = response.json().get("tag_name")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Latest version lookup failed for {clone_repo}: {e}")
            raise RepositoryResolutionError(
                f"Unable to retrieve repository latest version (repo={clone_repo})",
                details={"clone_repo": clone_repo},
            ) from e

        if not tag:
            raise RepositoryResolutionError(
                f"Repository {clone_repo} has no release",
                details={"clone_repo": clone_repo},
            )
        logger.debug(f"Latest version of {clone_repo} is {tag}")
        self.cache.set(clone_repo, tag)
        return tag

    async def resolve(
        self, package: RepositoryPackage, service_type: ServiceType
    ) -> ResolvedRepository:
        clone_repo, commitish, repo_name = _coordinates(package, service_type)
        if not commitish:
            commitish = await self.latest_version(clone_repo)
        return ResolvedRepository(clone_repo=clone_repo, commitish=commitish, repo_name=repo_name)
