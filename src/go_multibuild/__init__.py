"""go_multibuild: 外部Goリポジトリの取得・バージョン解決・クロスビルド.

設定されたリポジトリごとにcloneまたは更新し、前回ビルドからコミットが変わっていれば
指定された全プラットフォーム向けにビルドする。
"""

from go_multibuild.config import (
    BuildOptions,
    GlobalConfig,
    RepoConfig,
    RootConfig,
    load_config,
    parse_config,
)
from go_multibuild.fetcher import (
    ResolvedRevision,
    ensure_workspace,
    resolve_target,
    resolve_workspace_root,
    upgrade_to_latest_tag,
)
from go_multibuild.manifest import (
    create_build_manifest,
    load_build_manifest,
    read_last_build_sha,
    should_rebuild,
    write_build_manifest,
    write_last_build_sha,
)

__version__ = "0.1.0"

__all__ = [
    # config
    "GlobalConfig",
    "RepoConfig",
    "BuildOptions",
    "RootConfig",
    "load_config",
    "parse_config",
    # fetcher
    "ResolvedRevision",
    "resolve_target",
    "resolve_workspace_root",
    "ensure_workspace",
    "upgrade_to_latest_tag",
    # manifest
    "read_last_build_sha",
    "write_last_build_sha",
    "should_rebuild",
    "create_build_manifest",
    "write_build_manifest",
    "load_build_manifest",
]
