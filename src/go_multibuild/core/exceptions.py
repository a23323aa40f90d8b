"""マルチビルドの例外.

カスタム例外クラスを定義します。
"""

from __future__ import annotations

from collections.abc import Sequence


class MultiBuildError(Exception):
    """go_multibuild が送出する例外の基底クラス."""


class ConfigError(MultiBuildError):
    """設定ファイルの内容が不正な場合の例外.

    読み込み時点で検出され、実行全体を中断します。
    """


class CommandError(MultiBuildError):
    """外部コマンドが失敗した（または起動できなかった）場合の例外.

    Attributes:
        args_list: 実行したコマンドと引数
        cwd: 作業ディレクトリ（Noneはカレント）
        returncode: 終了コード（起動失敗時はNone）
    """

    def __init__(self, args_list: Sequence[str], cwd: str | None, returncode: int | None) -> None:
        self.args_list = list(args_list)
        self.cwd = cwd
        self.returncode = returncode
        where = f" in {cwd}" if cwd else ""
        if returncode is None:
            message = f"Failed to start command{where}: {' '.join(self.args_list)}"
        else:
            message = f"Command exited with status {returncode}{where}: {' '.join(self.args_list)}"
        super().__init__(message)


class CloneError(MultiBuildError):
    """初回cloneに失敗した場合の例外."""


class CheckoutError(MultiBuildError):
    """解決済みリビジョンのcheckoutに失敗した場合の例外."""


class WorkspaceError(MultiBuildError):
    """ワークスペース上のファイル操作（ディレクトリ作成・削除、マーカー書き込みなど）に失敗した場合の例外."""


class BuildError(MultiBuildError):
    """プラットフォーム別ビルドに失敗した場合の例外.

    Attributes:
        repo_name: リポジトリ名
        platform: 失敗したプラットフォーム（"os/arch"）
    """

    def __init__(self, repo_name: str, platform: str, cause: Exception | None = None) -> None:
        self.repo_name = repo_name
        self.platform = platform
        message = f"[{repo_name}][{platform}] build failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
