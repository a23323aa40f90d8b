"""マルチリポジトリのビルドオーケストレーター: 取得、リビジョン解決、変更検出、クロスビルド."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from loguru import logger

from go_multibuild import __version__
from go_multibuild.builder import ARTIFACTS_DIR, BuildContext, BuiltArtifact, build_platforms, prepare_toolchain
from go_multibuild.config import GlobalConfig, RepoConfig, RootConfig, load_config
from go_multibuild.core.env import first_non_empty
from go_multibuild.core.exceptions import ConfigError, MultiBuildError, WorkspaceError
from go_multibuild.core.runner import CommandRunner
from go_multibuild.fetcher import (
    ensure_workspace,
    resolve_target,
    resolve_workspace_root,
    upgrade_to_latest_tag,
)
from go_multibuild.manifest import (
    MANIFEST_FILE,
    create_build_manifest,
    load_build_manifest,
    read_last_build_sha,
    read_long_sha,
    read_short_sha,
    should_rebuild,
    write_build_manifest,
    write_last_build_sha,
)

RepoStatus = Literal["built", "skipped", "failed"]


@dataclass
class RepoResult:
    name: str
    status: RepoStatus
    ref: str = ""
    version: str = ""
    short_sha: str = ""
    artifacts: list[BuiltArtifact] = field(default_factory=list)
    last_built_version: str = ""
    error: str | None = None


def orchestrate_one(
    globals_cfg: GlobalConfig,
    repo: RepoConfig,
    runner: CommandRunner,
    force: bool = False,
    environ: Mapping[str, str] | None = None,
) -> RepoResult:
    """1リポジトリ分の取得からビルドまでを順に実行する.

    Args:
        globals_cfg: グローバル設定
        repo: リポジトリ設定
        runner: コマンドランナー
        force: マーカーを無視して再ビルドするか
        environ: ビルド環境のベースにする環境変数（Noneの場合は os.environ のコピー）

    Returns:
        処理結果（built / skipped）

    Raises:
        MultiBuildError: clone/checkout/ビルドの失敗など
        WorkspaceError: ワークスペース上のファイル操作が OSError で失敗した場合
    """
    if environ is None:
        environ = dict(os.environ)
    try:
        return _process_repo(globals_cfg, repo, runner, force, environ)
    except OSError as e:
        raise WorkspaceError(f"[{repo.name}] workspace I/O failed: {e}") from e


def _process_repo(
    globals_cfg: GlobalConfig,
    repo: RepoConfig,
    runner: CommandRunner,
    force: bool,
    environ: Mapping[str, str],
) -> RepoResult:
    workspace_root = resolve_workspace_root(globals_cfg, repo, environ)
    workspace_root.mkdir(parents=True, exist_ok=True)

    revision = resolve_target(repo)
    repo_dir = ensure_workspace(runner, repo, revision.ref, workspace_root)
    revision = upgrade_to_latest_tag(runner, repo.name, revision, repo_dir)

    short_sha = read_short_sha(runner, repo_dir)
    previous = read_last_build_sha(repo_dir)
    if not should_rebuild(short_sha, previous, force=force):
        last_manifest = load_build_manifest(repo_dir / ARTIFACTS_DIR / MANIFEST_FILE) or {}
        last_version = last_manifest.get("build_info", {}).get("version", "")
        logger.info(f"[{repo.name}] no changes since {short_sha} (last built as {last_version or 'unknown'}), skip")
        return RepoResult(
            name=repo.name,
            status="skipped",
            ref=revision.ref,
            version=revision.version,
            short_sha=short_sha,
            last_built_version=last_version,
        )
    logger.info(f"[{repo.name}] new commit {short_sha or '(unknown)'} @ {revision.version}")

    go_version = first_non_empty(repo.go_version, globals_cfg.default_go_version)
    ctx = BuildContext(
        repo_dir=repo_dir,
        workspace_root=workspace_root,
        version=revision.version,
        short_sha=short_sha,
        long_sha=read_long_sha(runner, repo_dir),
        go_version=go_version,
    )

    prepare_toolchain(runner, repo.name, go_version, repo_dir)
    artifacts = build_platforms(runner, repo, ctx, environ)

    if short_sha:
        write_last_build_sha(repo_dir, short_sha)
    else:
        logger.warning(f"[{repo.name}] commit hash unknown, change marker not written")

    manifest = create_build_manifest(
        repo_name=repo.name,
        git_url=repo.git_url,
        ref=revision.ref,
        version=revision.version,
        short_sha=short_sha,
        long_sha=ctx.long_sha,
        go_version=go_version,
        artifacts=[a.to_dict() for a in artifacts],
        builder_version=__version__,
    )
    write_build_manifest(manifest, ctx.artifacts_dir / MANIFEST_FILE)

    logger.info(f"[{repo.name}] completed, SHA={short_sha}")
    return RepoResult(
        name=repo.name,
        status="built",
        ref=revision.ref,
        version=revision.version,
        short_sha=short_sha,
        artifacts=artifacts,
    )


def orchestrate(
    config: RootConfig,
    runner: CommandRunner | None = None,
    force: bool = False,
    fail_fast: bool = False,
    only: list[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[RepoResult]:
    """設定順に全リポジトリを処理する.

    あるリポジトリの失敗は記録して次のリポジトリへ進む。fail_fast の場合は最初の失敗で中断する。

    Args:
        config: 検証済み設定
        runner: コマンドランナー（Noneの場合は CommandRunner）
        force: 変更検出を無視するか
        fail_fast: 最初の失敗で例外を送出するか
        only: 処理対象のリポジトリ名（Noneは全件）
        environ: ビルド環境のベース

    Returns:
        リポジトリごとの処理結果

    Raises:
        ConfigError: only に未知の名前が含まれる場合
        MultiBuildError: fail_fast 時の最初の失敗
    """
    runner = runner or CommandRunner()
    results: list[RepoResult] = []

    for repo in config.select(only):
        logger.info(f">>> Building {repo.name} @ {repo.target_ref}")
        try:
            result = orchestrate_one(config.globals, repo, runner, force=force, environ=environ)
        except MultiBuildError as e:
            logger.error(f"[{repo.name}] {e}")
            if fail_fast:
                raise
            result = RepoResult(name=repo.name, status="failed", ref=repo.target_ref, error=str(e))
        results.append(result)

    log_summary(results)
    return results


def log_summary(results: list[RepoResult]) -> None:
    for r in results:
        line = f"{r.name}: {r.status}"
        if r.short_sha:
            line += f" ({r.version} {r.short_sha})"
        if r.artifacts:
            line += f", {len(r.artifacts)} artifact(s)"
        if r.error:
            line += f" - {r.error}"
        if r.status == "failed":
            logger.error(line)
        else:
            logger.info(line)

    built = sum(1 for r in results if r.status == "built")
    skipped = sum(1 for r in results if r.status == "skipped")
    failed = sum(1 for r in results if r.status == "failed")
    logger.info(f"Summary: {built} built, {skipped} skipped, {failed} failed")


def configure_logging(verbose: bool = False) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Fetch, version and cross-compile configured Go repositories")
    p.add_argument(
        "--config",
        type=Path,
        default=Path("config.yml"),
        help="config.yml path",
    )
    p.add_argument(
        "--repo",
        action="append",
        default=None,
        help="only build the named repository (repeatable)",
    )
    p.add_argument("--force", action="store_true", help="Rebuild even if the commit is unchanged")
    p.add_argument("--fail-fast", action="store_true", help="Abort on the first failing repository")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = p.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
        results = orchestrate(
            config,
            force=args.force,
            fail_fast=args.fail_fast,
            only=args.repo,
        )
    except ConfigError as e:
        logger.error(str(e))
        return 1
    except MultiBuildError as e:
        logger.error(f"Aborted: {e}")
        return 1

    return 1 if any(r.status == "failed" for r in results) else 0


if __name__ == "__main__":
    sys.exit(main())
