from __future__ import annotations

import os
from pathlib import Path

import structlog

from manual_publish.core import (
    CommandError,
    CommandResult,
    DeployError,
    Settings,
    WorkLayout,
    register_secret,
    remove_tree,
    replace_dir_contents,
    run_command,
)
from manual_publish.models import DeployAck, validate_target_folder

log = structlog.get_logger(__name__)


def commit_message(*, branch: str, target_folder: str, source_ref: str | None) -> str:
    return f"Deploying to {branch}/{target_folder} from @ {source_ref or 'unknown'}"


class GitPagesPublisher:
    """
    Publishes a directory into one folder of a git pages branch.

    Every deploy starts from a fresh shallow clone of the branch (or a new
    orphan branch when the remote has none), swaps the target folder for the
    new content, and pushes only when `git status` reports a difference inside
    that folder.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        remote: str | None = None,
        source_ref: str | None = None,
    ) -> None:
        self.settings = settings
        self.remote = remote or settings.resolved_remote()
        self.source_ref = source_ref
        self.layout = WorkLayout(root=Path(settings.work_root))
        for s in settings.secrets():
            register_secret(s)

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def _git(self, *args: str, cwd: Path | None = None) -> CommandResult:
        return run_command([self.settings.git_bin, *args], cwd=cwd, env=self._env())

    def _remote_has_branch(self, remote: str, branch: str) -> bool:
        ref = f"refs/heads/{branch}"
        res = self._git("ls-remote", "--heads", remote, ref)
        # ls-remote matches ref patterns by suffix; keep exact names only
        return any(
            line.split("\t", 1)[-1] == ref for line in res.stdout.splitlines()
        )

    def _prepare_checkout(self, remote: str, branch: str) -> Path:
        checkout = self.layout.pages_checkout(branch)
        remove_tree(checkout)
        self.layout.ensure_dirs()

        if self._remote_has_branch(remote, branch):
            self._git(
                "clone",
                "--quiet",
                "--depth",
                "1",
                "--single-branch",
                "--branch",
                branch,
                remote,
                str(checkout),
            )
        else:
            log.info("pages.branch.create", branch=branch)
            checkout.mkdir(parents=True)
            self._git("init", "--quiet", cwd=checkout)
            self._git("remote", "add", "origin", remote, cwd=checkout)
            self._git("symbolic-ref", "HEAD", f"refs/heads/{branch}", cwd=checkout)
        return checkout

    def deploy(self, content_root: Path, branch: str, target_folder: str) -> DeployAck:
        try:
            validate_target_folder(target_folder)
        except ValueError as e:
            raise DeployError(str(e)) from e

        if self.remote is None:
            raise DeployError(
                "No pages remote: set MANUAL_PUBLISH_DEPLOY_TOKEN (or GITHUB_TOKEN) "
                "or MANUAL_PUBLISH_PAGES_REMOTE."
            )

        content_root = Path(content_root)
        if not content_root.is_dir():
            raise DeployError(f"content root is not a directory: {content_root}")

        try:
            checkout = self._prepare_checkout(self.remote, branch)
            files = replace_dir_contents(
                src=content_root, final_dir=checkout / target_folder
            )

            # ignore rules on the branch must not drop published files
            self._git("add", "--all", "--force", "--", target_folder, cwd=checkout)
            status = self._git(
                "status", "--porcelain", "--", target_folder, cwd=checkout
            ).stdout
            if not status.strip():
                log.info(
                    "pages.deploy.unchanged", branch=branch, target_folder=target_folder
                )
                return DeployAck(
                    branch=branch,
                    target_folder=target_folder,
                    changed=False,
                    files=files,
                )

            self._git(
                "-c",
                f"user.name={self.settings.commit_name}",
                "-c",
                f"user.email={self.settings.commit_email}",
                "commit",
                "--quiet",
                "-m",
                commit_message(
                    branch=branch,
                    target_folder=target_folder,
                    source_ref=self.source_ref,
                ),
                cwd=checkout,
            )
            self._git("push", "--quiet", "origin", f"HEAD:refs/heads/{branch}", cwd=checkout)
            sha = self._git("rev-parse", "HEAD", cwd=checkout).stdout.strip()
        except CommandError as e:
            raise DeployError(f"deploy to {branch}/{target_folder} failed: {e}") from e
        except OSError as e:
            raise DeployError(f"deploy to {branch}/{target_folder} failed: {e}") from e

        log.info(
            "pages.deploy.pushed",
            branch=branch,
            target_folder=target_folder,
            commit=sha,
            files=files,
        )
        return DeployAck(
            branch=branch,
            target_folder=target_folder,
            changed=True,
            commit=sha,
            files=files,
        )
