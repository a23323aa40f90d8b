"""マルチビルドの基盤処理群.

- 外部コマンド実行
- 環境変数の展開とフォールバック解決
- プラットフォーム解析
"""

from .env import expand_env, first_non_empty, merge_environment
from .exceptions import (
    BuildError,
    CheckoutError,
    CloneError,
    CommandError,
    ConfigError,
    MultiBuildError,
    WorkspaceError,
)
from .platforms import Platform, artifact_name, parse_platform
from .runner import CommandRunner

__all__ = [
    "CommandRunner",
    "expand_env",
    "first_non_empty",
    "merge_environment",
    "Platform",
    "parse_platform",
    "artifact_name",
    "MultiBuildError",
    "ConfigError",
    "CommandError",
    "CloneError",
    "CheckoutError",
    "BuildError",
    "WorkspaceError",
]
