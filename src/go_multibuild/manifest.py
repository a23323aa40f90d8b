"""変更検出マーカー（.last_build_sha）とビルドマニフェスト（build_manifest.json）の管理."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from go_multibuild.core.exceptions import CommandError
from go_multibuild.core.runner import CommandRunner

LAST_BUILD_SHA_FILE = ".last_build_sha"
MANIFEST_FILE = "build_manifest.json"


def read_short_sha(runner: CommandRunner, repo_dir: Path) -> str:
    """HEADの短縮コミットハッシュ（7文字）を取得する。失敗時は空文字."""
    try:
        return runner.output(["git", "rev-parse", "--short=7", "HEAD"], cwd=repo_dir)
    except CommandError as e:
        logger.warning(f"Failed to read short commit hash in {repo_dir}: {e}")
        return ""


def read_long_sha(runner: CommandRunner, repo_dir: Path) -> str:
    try:
        return runner.output(["git", "rev-parse", "HEAD"], cwd=repo_dir)
    except CommandError as e:
        logger.warning(f"Failed to read commit hash in {repo_dir}: {e}")
        return ""


def read_last_build_sha(repo_dir: Path) -> str:
    """前回ビルド成功時の短縮ハッシュを読む.

    Args:
        repo_dir: リポジトリディレクトリ

    Returns:
        記録済みハッシュ。マーカーがない、またはUTF-8として読めなければ空文字
    """
    marker = repo_dir / LAST_BUILD_SHA_FILE
    if not marker.exists():
        return ""
    try:
        return marker.read_text(encoding="utf-8").strip()
    except UnicodeDecodeError as e:
        logger.warning(f"Ignoring unreadable build marker {marker}: {e}")
        return ""


def write_last_build_sha(repo_dir: Path, short_sha: str) -> None:
    (repo_dir / LAST_BUILD_SHA_FILE).write_text(short_sha, encoding="utf-8")


def should_rebuild(current_sha: str, previous_sha: str, force: bool = False) -> bool:
    """前回ビルドからコミットが変わったかでリビルド要否を判定.

    Args:
        current_sha: 現在のHEADの短縮ハッシュ
        previous_sha: マーカーに記録された短縮ハッシュ
        force: 強制リビルドフラグ

    Returns:
        リビルドが必要ならTrue
    """
    if force:
        logger.info("Force rebuild enabled")
        return True
    if current_sha and current_sha == previous_sha:
        return False
    return True


def create_build_manifest(
    repo_name: str,
    git_url: str,
    ref: str,
    version: str,
    short_sha: str,
    long_sha: str,
    go_version: str,
    artifacts: list[dict],
    builder_version: str = "0.1.0",
) -> dict:
    """ビルドマニフェストを作成.

    Args:
        repo_name: リポジトリ名
        git_url: 取得元URL
        ref: checkoutしたref
        version: 実効バージョン（タグ、version、または branch）
        short_sha: 短縮コミットハッシュ
        long_sha: コミットハッシュ
        go_version: 使用したGoツールチェーンのバージョン
        artifacts: 成果物情報（platform、path）のリスト
        builder_version: go_multibuildのバージョン

    Returns:
        マニフェスト辞書
    """
    return {
        "build_info": {
            "repo": repo_name,
            "git_url": git_url,
            "ref": ref,
            "version": version,
            "commit": {"short": short_sha, "long": long_sha},
            "go_version": go_version,
            "built_at": datetime.now(UTC).isoformat(),
            "builder_version": builder_version,
        },
        "artifacts": artifacts,
    }


def write_build_manifest(manifest: dict, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)

    logger.info(f"Build manifest written to {output_path}")


def load_build_manifest(manifest_path: Path) -> dict | None:
    """前回書き出したマニフェストを読む.

    Returns:
        マニフェスト辞書。ファイルがない、またはJSONとして読めなければNone
    """
    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except ValueError as e:
        logger.warning(f"Ignoring unreadable build manifest {manifest_path}: {e}")
        return None
    return manifest if isinstance(manifest, dict) else None
