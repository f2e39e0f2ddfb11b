from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

LogFormat = Literal["json", "console"]

GITHUB_HOST = "github.com"

BOT_NAME = "github-actions[bot]"
BOT_EMAIL = "41898282+github-actions[bot]@users.noreply.github.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MANUAL_PUBLISH_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # gating
    canonical_repository: str = Field(default="zhaofengli/colmena")
    canonical_branch: str = Field(default="main")
    upstream_workflow: str = Field(default="Build")

    # publish target
    pages_branch: str = Field(default="gh-pages")
    manual_folder: str = Field(default="unstable")
    deploy_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "MANUAL_PUBLISH_DEPLOY_TOKEN", "GITHUB_TOKEN"
        ),
    )
    pages_remote: str | None = Field(default=None)
    commit_name: str = Field(default=BOT_NAME)
    commit_email: str = Field(default=BOT_EMAIL)

    # build tooling
    flake_ref: str = Field(default=".")
    manual_attr: str = Field(default="manual")
    redirect_farm_attr: str = Field(default="manual.redirectFarm")
    api_version_attr: str = Field(default="colmena.apiVersion")
    nix_bin: str = Field(default="nix")
    git_bin: str = Field(default="git")

    # local state
    work_root: Path = Field(default=Path("_work"))
    run_root: Path = Field(default=Path("_runs"))
    github_env: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("GITHUB_ENV"),
    )

    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="console")

    def resolved_remote(self) -> str | None:
        """
        Remote URL of the pages repository.

        An explicit `pages_remote` wins; otherwise the URL is derived from the
        canonical repository and the deploy token. Returns None when neither
        is available.
        """
        if self.pages_remote:
            return self.pages_remote
        if self.deploy_token is None:
            return None
        token = self.deploy_token.get_secret_value()
        return f"https://x-access-token:{token}@{GITHUB_HOST}/{self.canonical_repository}.git"

    def secrets(self) -> tuple[str, ...]:
        """
        Values that must never reach logs, errors or reports: the deploy token
        and any credentials embedded in an explicit `pages_remote` URL.
        """
        out: list[str] = []
        if self.deploy_token is not None:
            out.append(self.deploy_token.get_secret_value())
        if self.pages_remote:
            userinfo = urlsplit(self.pages_remote).netloc.rpartition("@")[0]
            if userinfo:
                out.append(userinfo)
                _, sep, password = userinfo.partition(":")
                if sep and password:
                    out.append(password)
        return tuple(out)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
