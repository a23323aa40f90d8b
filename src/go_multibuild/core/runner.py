"""外部コマンド実行."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from loguru import logger

from .exceptions import CommandError


class CommandRunner:
    """外部コマンドを同期実行するランナー.

    ``cwd=None`` はカレントディレクトリ、``env=None`` はプロセス環境の継承を意味する。
    失敗は CommandError として呼び出し元に返し、致命的かどうかは判断しない。
    """

    def run(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """コマンドを実行し、stdout/stderrをそのまま親プロセスへ流す.

        Raises:
            CommandError: 非ゼロ終了または起動失敗
        """
        cwd_str = str(cwd) if cwd else None
        logger.debug(f"RUN: {' '.join(args)} (cwd={cwd_str or '.'})")
        try:
            result = subprocess.run(
                list(args),
                cwd=cwd_str,
                env=dict(env) if env is not None else None,
            )
        except OSError as e:
            raise CommandError(args, cwd_str, None) from e
        if result.returncode != 0:
            raise CommandError(args, cwd_str, result.returncode)

    def output(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> str:
        """コマンドを実行し、前後の空白を除いたstdoutを返す（stderrは破棄）.

        Raises:
            CommandError: 非ゼロ終了または起動失敗
        """
        cwd_str = str(cwd) if cwd else None
        logger.debug(f"OUTPUT: {' '.join(args)} (cwd={cwd_str or '.'})")
        try:
            result = subprocess.run(
                list(args),
                cwd=cwd_str,
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise CommandError(args, cwd_str, None) from e
        if result.returncode != 0:
            raise CommandError(args, cwd_str, result.returncode)
        return result.stdout.strip()
