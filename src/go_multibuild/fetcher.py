"""ソースリポジトリの取得とリビジョン解決."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from go_multibuild.config import GlobalConfig, RepoConfig
from go_multibuild.core.env import expand_env, first_non_empty
from go_multibuild.core.exceptions import CheckoutError, CloneError, CommandError, ConfigError
from go_multibuild.core.runner import CommandRunner


@dataclass(frozen=True)
class ResolvedRevision:
    """ビルド対象のリビジョン.

    Attributes:
        ref: checkoutするref（version または branch）
        version: ログ・成果物情報に使う実効バージョン（タグが見つかればタグ）
        from_branch: ref が branch 由来かどうか
    """

    ref: str
    version: str
    from_branch: bool


def resolve_workspace_root(globals_cfg: GlobalConfig, repo: RepoConfig, environ: Mapping[str, str]) -> Path:
    """リポジトリ単位の env["WORKSPACE"] → グローバル設定の順でワークスペースを決める.

    相対パスはカレントディレクトリ基準の絶対パスとして返す。
    """
    override = expand_env(repo.env.get("WORKSPACE", ""), environ)
    return Path(first_non_empty(override, globals_cfg.workspace_dir)).expanduser().resolve()


def resolve_target(repo: RepoConfig) -> ResolvedRevision:
    """checkout対象のrefを決定する.

    Raises:
        ConfigError: version と branch がどちらも空の場合
    """
    if not repo.version and not repo.branch:
        raise ConfigError(f"[{repo.name}] both version and branch are empty")
    ref = first_non_empty(repo.version, repo.branch)
    return ResolvedRevision(ref=ref, version=ref, from_branch=not repo.version)


def ensure_workspace(
    runner: CommandRunner,
    repo: RepoConfig,
    ref: str,
    workspace_root: Path,
) -> Path:
    """リポジトリのローカルcloneを用意し、ref をcheckoutした状態にする.

    既存cloneがあれば fetch → checkout → ff-only pull、なければ単一ブランチでclone。

    Args:
        runner: コマンドランナー
        repo: リポジトリ設定
        ref: checkoutするref
        workspace_root: ワークスペースのルート

    Returns:
        リポジトリディレクトリ

    Raises:
        CloneError: cloneに失敗した場合
        CheckoutError: checkoutに失敗した場合
    """
    repo_dir = workspace_root / repo.name

    if repo_dir.exists() and not (repo_dir / ".git").exists():
        logger.warning(f"[{repo.name}] existing path is not a git repo, recreating: {repo_dir}")
        shutil.rmtree(repo_dir)

    if repo_dir.exists():
        logger.info(f"[{repo.name}] git fetch & checkout {ref}")
        try:
            runner.run(["git", "fetch", "--all", "--prune"], cwd=repo_dir)
        except CommandError as e:
            logger.warning(f"[{repo.name}] git fetch failed, continuing: {e}")
        try:
            runner.run(["git", "checkout", ref], cwd=repo_dir)
        except CommandError as e:
            raise CheckoutError(f"[{repo.name}] git checkout {ref} failed: {e}") from e
        # タグや detached HEAD では失敗しうる
        try:
            runner.run(["git", "pull", "--ff-only", "origin", ref], cwd=repo_dir)
        except CommandError as e:
            logger.info(f"[{repo.name}] fast-forward pull skipped: {e}")
        return repo_dir

    workspace_root.mkdir(parents=True, exist_ok=True)
    logger.info(f"[{repo.name}] git clone {repo.git_url} (ref={ref})")
    try:
        runner.run(
            ["git", "clone", "--branch", ref, "--single-branch", repo.git_url, repo.name],
            cwd=workspace_root,
        )
    except CommandError as e:
        raise CloneError(f"[{repo.name}] git clone failed: {e}") from e
    return repo_dir


def find_latest_tag(runner: CommandRunner, repo_name: str, repo_dir: Path) -> str | None:
    """HEADから到達可能な最新タグを返す（見つからなければNone）."""
    logger.info(f"[{repo_name}] Prepare version: fetch tags ...")
    try:
        runner.run(["git", "fetch", "-q", "--tags"], cwd=repo_dir)
    except CommandError as e:
        logger.warning(f"[{repo_name}] git fetch --tags failed: {e}")
    try:
        tag = runner.output(["git", "describe", "--tags", "--abbrev=0"], cwd=repo_dir)
    except CommandError as e:
        logger.info(f"[{repo_name}] No latest tag: {e}")
        return None
    return tag or None


def upgrade_to_latest_tag(
    runner: CommandRunner,
    repo_name: str,
    revision: ResolvedRevision,
    repo_dir: Path,
) -> ResolvedRevision:
    """branch 由来のrefなら最新タグを実効バージョンとして採用する.

    作業ツリーはタグへcheckoutし直さない。ビルドは branch の指すコミットに対して行う。
    """
    if not revision.from_branch:
        return revision
    tag = find_latest_tag(runner, repo_name, repo_dir)
    if tag is None:
        return revision
    logger.info(f"[{repo_name}] Latest tag = {tag}")
    return ResolvedRevision(ref=revision.ref, version=tag, from_branch=True)
