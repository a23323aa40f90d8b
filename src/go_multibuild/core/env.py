"""環境変数の展開とフォールバック解決."""

from __future__ import annotations

import re
from collections.abc import Mapping

_VAR_PATTERN = re.compile(r"\$(?:\{(?P<braced>[^}]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))")


def expand_env(value: str | None, environ: Mapping[str, str]) -> str:
    """文字列中の ``$NAME`` / ``${NAME}`` を展開する.

    未定義の変数は空文字に置き換える。``$`` の後に変数名が続かない場合はそのまま残す。

    Args:
        value: 展開対象の文字列（Noneは空文字扱い）
        environ: 参照する環境変数のスナップショット

    Returns:
        展開後の文字列
    """
    if not value:
        return ""

    def _replace(match: re.Match[str]) -> str:
        name = match.group("braced")
        if name is None:
            name = match.group("bare")
        return environ.get(name, "")

    return _VAR_PATTERN.sub(_replace, value)


def first_non_empty(*values: str | None) -> str:
    """先頭から見て最初の空でない値を返す（全て空なら空文字）."""
    for value in values:
        if value:
            return value
    return ""


def merge_environment(base: Mapping[str, str], *layers: Mapping[str, str]) -> dict[str, str]:
    """ベース環境にレイヤーを順に重ねた新しい環境を作る.

    後のレイヤーが同じキーを上書きする。``base`` や ``os.environ`` は変更しない。

    Args:
        base: 元になる環境変数
        layers: 上書きする環境変数（優先度の低い順）

    Returns:
        合成済みの環境変数辞書
    """
    merged = dict(base)
    for layer in layers:
        for key, value in layer.items():
            merged[key] = value
    return merged
