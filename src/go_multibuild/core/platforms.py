"""プラットフォーム文字列の解析と成果物名の決定."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Platform:
    os: str
    arch: str

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


def parse_platform(value: str) -> Platform | None:
    """``"os/arch"`` を最初の ``/`` で分割する.

    Args:
        value: プラットフォーム文字列（例: "linux/amd64"）

    Returns:
        Platform、分割結果が2つの空でない要素にならない場合は None
    """
    parts = value.split("/", 1)
    if len(parts) != 2:
        return None
    goos, goarch = parts[0].strip(), parts[1].strip()
    if not goos or not goarch:
        return None
    return Platform(os=goos, arch=goarch)


def artifact_name(repo_name: str, platform: Platform) -> str:
    # windows向けのみ拡張子を付ける
    name = f"{repo_name}-{platform.os}-{platform.arch}"
    if platform.os == "windows":
        name += ".exe"
    return name
