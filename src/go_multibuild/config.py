"""設定ファイル（config.yml）の読み込みと検証.

設定は起動時に一度だけ読み込み、以後は変更しない。
環境変数の展開も読み込み時に一度だけ、明示的なスナップショットに対して行う。
ただしビルド引数（build_args / build.*）はプラットフォームごとのビルド環境で展開するため、
ここでは展開しない。
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from go_multibuild.core.env import expand_env, first_non_empty
from go_multibuild.core.exceptions import ConfigError

DEFAULT_WORKSPACE_DIR = "workspace"
DEFAULT_GO_VERSION = "1.24"


@dataclass(frozen=True)
class GlobalConfig:
    workspace_dir: str = DEFAULT_WORKSPACE_DIR
    default_go_version: str = DEFAULT_GO_VERSION


@dataclass(frozen=True)
class BuildOptions:
    """構造化されたビルドオプション.

    build_args（自由記述）が空の場合に使用する。各値は個別の引数として渡され、
    シェルを経由しない。
    """

    tags: tuple[str, ...] = ()
    ldflags: str = ""
    strip: bool = True
    trimpath: bool = True
    target: str = "."
    extra_args: tuple[str, ...] = ()


@dataclass(frozen=True)
class RepoConfig:
    name: str
    git_url: str
    version: str = ""
    branch: str = ""
    go_version: str = ""
    platforms: tuple[str, ...] = ()
    build_args: str = ""
    build: BuildOptions = field(default_factory=BuildOptions)
    env: dict[str, str] = field(default_factory=dict)

    @property
    def target_ref(self) -> str:
        """version → branch の順で最初の空でない値."""
        return first_non_empty(self.version, self.branch)


@dataclass(frozen=True)
class RootConfig:
    globals: GlobalConfig
    repos: tuple[RepoConfig, ...]

    def select(self, names: list[str] | None) -> tuple[RepoConfig, ...]:
        """名前で絞り込んだリポジトリを設定順で返す.

        Raises:
            ConfigError: 存在しない名前が指定された場合
        """
        if not names:
            return self.repos
        known = {r.name for r in self.repos}
        unknown = [n for n in names if n not in known]
        if unknown:
            raise ConfigError(f"Unknown repository name(s): {', '.join(unknown)}")
        wanted = set(names)
        return tuple(r for r in self.repos if r.name in wanted)


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_bool(value: Any, default: bool, field_name: str, where: str) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{where}: {field_name} must be true or false, got {value!r}")
    return value


def _as_str_list(value: Any, field_name: str, where: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        # "linux/amd64,windows/amd64" 形式も受け付ける
        return [v.strip() for v in value.split(",") if v.strip()]
    if not isinstance(value, list):
        raise ConfigError(f"{where}: {field_name} must be a list, got {type(value).__name__}")
    return [_as_str(v) for v in value]


def _parse_build_options(raw: Any, where: str) -> BuildOptions:
    if raw is None:
        return BuildOptions()
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: build must be a mapping, got {type(raw).__name__}")
    return BuildOptions(
        tags=tuple(_as_str_list(raw.get("tags"), "build.tags", where)),
        ldflags=_as_str(raw.get("ldflags")),
        strip=_as_bool(raw.get("strip"), True, "build.strip", where),
        trimpath=_as_bool(raw.get("trimpath"), True, "build.trimpath", where),
        target=_as_str(raw.get("target")) or ".",
        extra_args=tuple(_as_str_list(raw.get("extra_args"), "build.extra_args", where)),
    )


def parse_repo(raw: Any, index: int, environ: Mapping[str, str]) -> RepoConfig:
    """リポジトリ定義を1件解析して検証する.

    Args:
        raw: YAMLから読み込んだリポジトリ定義
        index: repos内の位置（エラーメッセージ用）
        environ: 展開に使う環境変数スナップショット

    Returns:
        展開・検証済みのRepoConfig

    Raises:
        ConfigError: 必須項目の欠落など
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"repo[{index}]: entry must be a mapping, got {type(raw).__name__}")

    name = expand_env(_as_str(raw.get("name")), environ).strip()
    where = f"repo[{index}] name={name}"

    raw_env = raw.get("env") or {}
    if not isinstance(raw_env, dict):
        raise ConfigError(f"{where}: env must be a mapping, got {type(raw_env).__name__}")
    env = {str(k): expand_env(_as_str(v), environ) for k, v in raw_env.items()}

    version = expand_env(_as_str(raw.get("version")), environ).strip()
    branch = expand_env(_as_str(raw.get("branch")), environ).strip()

    repo = RepoConfig(
        name=name,
        git_url=expand_env(_as_str(raw.get("git_url")), environ).strip(),
        version=version,
        branch=branch,
        go_version=expand_env(_as_str(raw.get("go_version")), environ).strip(),
        platforms=tuple(_as_str_list(raw.get("platforms"), "platforms", where)),
        build_args=_as_str(raw.get("build_args")).strip(),
        build=_parse_build_options(raw.get("build"), where),
        env=env,
    )

    if not repo.name:
        raise ConfigError(f"{where}: name is required")
    if not repo.git_url:
        raise ConfigError(f"{where}: git_url is required")
    if not repo.target_ref:
        raise ConfigError(f"{where}: both version and branch are empty")
    if not repo.platforms:
        raise ConfigError(f"{where}: platforms must be defined")
    try:
        shlex.split(repo.build_args)
    except ValueError as e:
        raise ConfigError(f"{where}: build_args cannot be tokenized: {e}") from e
    return repo


def parse_config(data: Any, environ: Mapping[str, str] | None = None) -> RootConfig:
    """読み込み済みの設定辞書を検証してRootConfigに変換する.

    Args:
        data: YAMLを読み込んだ辞書
        environ: 展開に使う環境変数（Noneの場合は os.environ のコピー）

    Returns:
        RootConfig

    Raises:
        ConfigError: 設定が不正な場合
    """
    if environ is None:
        environ = dict(os.environ)
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    raw_globals = data.get("globals") or {}
    if not isinstance(raw_globals, dict):
        raise ConfigError("globals must be a mapping")

    globals_cfg = GlobalConfig(
        workspace_dir=first_non_empty(
            expand_env(_as_str(raw_globals.get("workspace_dir")), environ).strip(),
            DEFAULT_WORKSPACE_DIR,
        ),
        default_go_version=first_non_empty(
            expand_env(_as_str(raw_globals.get("default_go_version")), environ).strip(),
            DEFAULT_GO_VERSION,
        ),
    )

    raw_repos = data.get("repos") or []
    if not isinstance(raw_repos, list):
        raise ConfigError("repos must be a list")

    repos: list[RepoConfig] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_repos):
        repo = parse_repo(raw, i, environ)
        if repo.name in seen:
            raise ConfigError(f"repo[{i}] name={repo.name}: duplicate repository name")
        seen.add(repo.name)
        repos.append(repo)

    return RootConfig(globals=globals_cfg, repos=tuple(repos))


def load_config(config_path: Path | str, environ: Mapping[str, str] | None = None) -> RootConfig:
    """config.ymlを読み込んで検証済みの設定を返す.

    Args:
        config_path: 設定ファイルのパス
        environ: 展開に使う環境変数（Noneの場合は os.environ のコピー）

    Returns:
        RootConfig

    Raises:
        ConfigError: ファイルが存在しない、YAMLが不正、または設定値が不正な場合
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {config_path}") from e

    config = parse_config(data, environ)
    logger.info(f"Loaded {len(config.repos)} repositories from {config_path}")
    logger.info(f"Using default_go_version = {config.globals.default_go_version!r}")
    return config
