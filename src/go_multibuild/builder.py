"""マルチプラットフォームビルダー.

Goツールチェーンを用意し、設定された "os/arch" ごとに独立した環境変数でビルドする。
ビルドコマンドは引数リストとして組み立て、シェルは経由しない。
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from go_multibuild.config import RepoConfig
from go_multibuild.core.env import expand_env, merge_environment
from go_multibuild.core.exceptions import BuildError, CommandError
from go_multibuild.core.platforms import Platform, artifact_name, parse_platform
from go_multibuild.core.runner import CommandRunner

ARTIFACTS_DIR = "artifacts"
STRIP_LDFLAGS = "-s -w -buildid="


@dataclass(frozen=True)
class BuiltArtifact:
    platform: Platform
    path: Path

    def to_dict(self) -> dict:
        return {"platform": str(self.platform), "path": str(self.path)}


@dataclass(frozen=True)
class BuildContext:
    """1リポジトリ分のビルドに共通する情報."""

    repo_dir: Path
    workspace_root: Path
    version: str
    short_sha: str
    long_sha: str
    go_version: str

    @property
    def go_bin(self) -> str:
        return toolchain_binary(self.go_version)

    @property
    def artifacts_dir(self) -> Path:
        return self.repo_dir / ARTIFACTS_DIR


def toolchain_binary(go_version: str) -> str:
    return f"go{go_version}"


def prepare_toolchain(runner: CommandRunner, repo_name: str, go_version: str, repo_dir: Path) -> None:
    """指定バージョンのGoを導入し、依存関係を整理する.

    いずれも失敗しても続行する。導入に失敗した場合は後続のビルド失敗として表面化する。
    """
    go_bin = toolchain_binary(go_version)
    steps = [
        (["go", "install", f"golang.org/dl/{go_bin}@latest"], None),
        ([go_bin, "download"], None),
        ([go_bin, "mod", "tidy"], repo_dir),
    ]
    for args, cwd in steps:
        try:
            runner.run(args, cwd=cwd)
        except CommandError as e:
            logger.warning(f"[{repo_name}] {' '.join(args)} failed, continuing: {e}")


def build_environment(
    base: Mapping[str, str],
    platform: Platform,
    ctx: BuildContext,
    output: Path,
    repo_env: Mapping[str, str],
) -> dict[str, str]:
    """プラットフォーム1件分のビルド環境を作る.

    組み込み変数の後にリポジトリの env を重ねるため、キーが衝突した場合はリポジトリ側が優先される。
    """
    builtins = {
        "GOOS": platform.os,
        "GOARCH": platform.arch,
        "CGO_ENABLED": "0",
        "SHORT_SHA": ctx.short_sha,
        "REPO_SHORT_SHA": ctx.short_sha,
        "REPO_LONG_SHA": ctx.long_sha,
        "REPO_TAG": ctx.version,
        "OUTPUT": str(output),
        "WORKSPACE": str(ctx.workspace_root),
    }
    return merge_environment(base, builtins, repo_env)


def render_ldflags(template: str, strip: bool, env: Mapping[str, str]) -> str:
    flags = expand_env(template, env)
    if strip:
        flags = f"{flags} {STRIP_LDFLAGS}"
    return flags.strip()


def build_command(repo: RepoConfig, go_bin: str, env: Mapping[str, str]) -> list[str]:
    """ビルドコマンドの引数リストを組み立てる.

    build_args が設定されていればトークン分割して各トークンを展開し、
    なければ構造化された build オプションから組み立てる。
    """
    if repo.build_args:
        return [go_bin, *(expand_env(token, env) for token in shlex.split(repo.build_args))]

    opts = repo.build
    args = [go_bin, "build"]
    if opts.trimpath:
        args += ["-trimpath", "-buildvcs=false"]
    if opts.tags:
        args += ["-tags", ",".join(opts.tags)]
    ldflags = render_ldflags(opts.ldflags, opts.strip, env)
    if ldflags:
        args += ["-ldflags", ldflags]
    args += ["-o", env["OUTPUT"]]
    args += [expand_env(arg, env) for arg in opts.extra_args]
    args.append(opts.target)
    return args


def build_platforms(
    runner: CommandRunner,
    repo: RepoConfig,
    ctx: BuildContext,
    base_env: Mapping[str, str],
) -> list[BuiltArtifact]:
    """設定順に全プラットフォームをビルドする.

    Args:
        runner: コマンドランナー
        repo: リポジトリ設定
        ctx: ビルドコンテキスト
        base_env: 継承するプロセス環境のスナップショット

    Returns:
        生成した成果物のリスト

    Raises:
        BuildError: いずれかのプラットフォームでビルドに失敗した場合（残りは実行しない）
    """
    ctx.artifacts_dir.mkdir(parents=True, exist_ok=True)
    built: list[BuiltArtifact] = []

    for entry in repo.platforms:
        platform = parse_platform(entry)
        if platform is None:
            logger.warning(f"[{repo.name}] invalid platform: {entry}")
            continue

        output = ctx.artifacts_dir / artifact_name(repo.name, platform)
        env = build_environment(base_env, platform, ctx, output, repo.env)
        args = build_command(repo, ctx.go_bin, env)

        logger.info(f"[{repo.name}][{platform}] RUN: {shlex.join(args)}")
        try:
            runner.run(args, cwd=ctx.repo_dir, env=env)
        except CommandError as e:
            raise BuildError(repo.name, str(platform), e) from e

        built.append(BuiltArtifact(platform=platform, path=output))

    return built
