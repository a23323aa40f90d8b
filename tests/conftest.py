from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

from go_multibuild.core.exceptions import CommandError


@dataclass
class Call:
    mode: str
    args: list[str]
    cwd: Path | None
    env: dict[str, str] | None


class FakeRunner:
    """外部コマンドを実行せずに記録するランナー.

    - outputs: 引数tuple → output() の戻り値。未登録のコマンドは失敗扱い
    - failures: 引数の先頭一致で失敗させるprefixのリスト
    - git clone はディレクトリと .git を作成する
    - build（env付きの実行）は OUTPUT にダミー成果物を書き出す
    """

    def __init__(
        self,
        outputs: Mapping[tuple[str, ...], str] | None = None,
        failures: Sequence[tuple[str, ...]] | None = None,
    ) -> None:
        self.outputs = dict(outputs or {})
        self.failures = list(failures or [])
        self.calls: list[Call] = []

    def _check_failure(self, args: Sequence[str], cwd: str | Path | None) -> None:
        for prefix in self.failures:
            if tuple(args[: len(prefix)]) == prefix:
                raise CommandError(args, str(cwd) if cwd else None, 1)

    def run(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.calls.append(
            Call("run", list(args), Path(cwd) if cwd else None, dict(env) if env is not None else None)
        )
        self._check_failure(args, cwd)
        if list(args[:2]) == ["git", "clone"] and cwd is not None:
            (Path(cwd) / args[-1] / ".git").mkdir(parents=True, exist_ok=True)
        if env is not None and env.get("OUTPUT"):
            Path(env["OUTPUT"]).write_bytes(b"binary")

    def output(
        self,
        args: Sequence[str],
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> str:
        self.calls.append(
            Call("output", list(args), Path(cwd) if cwd else None, dict(env) if env is not None else None)
        )
        self._check_failure(args, cwd)
        key = tuple(args)
        if key not in self.outputs:
            raise CommandError(args, str(cwd) if cwd else None, 128)
        return self.outputs[key]

    def commands(self) -> list[list[str]]:
        return [c.args for c in self.calls]

    def builds(self) -> list[Call]:
        """ビルド環境付きで実行された呼び出し（= プラットフォームビルド）."""
        return [c for c in self.calls if c.mode == "run" and c.env is not None]


SHORT_SHA_CMD = ("git", "rev-parse", "--short=7", "HEAD")
LONG_SHA_CMD = ("git", "rev-parse", "HEAD")
DESCRIBE_CMD = ("git", "describe", "--tags", "--abbrev=0")


def head_outputs(short_sha: str, tag: str | None = None) -> dict[tuple[str, ...], str]:
    outputs = {
        SHORT_SHA_CMD: short_sha,
        LONG_SHA_CMD: short_sha + "0" * (40 - len(short_sha)),
    }
    if tag is not None:
        outputs[DESCRIBE_CMD] = tag
    return outputs


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner(outputs=head_outputs("abc1234"))
