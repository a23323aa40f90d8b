"""Unit tests for configuration loading and validation."""

from pathlib import Path

import pytest

from go_multibuild.config import (
    DEFAULT_GO_VERSION,
    DEFAULT_WORKSPACE_DIR,
    BuildOptions,
    load_config,
    parse_config,
)
from go_multibuild.core.exceptions import ConfigError


def _repo(**overrides) -> dict:
    repo = {
        "name": "demo",
        "git_url": "https://example.com/demo.git",
        "branch": "main",
        "platforms": ["linux/amd64"],
    }
    repo.update(overrides)
    return repo


class TestParseConfig:
    def test_defaults(self) -> None:
        """globals省略時にデフォルト値が使われること."""
        config = parse_config({"repos": [_repo()]}, environ={})

        assert config.globals.workspace_dir == DEFAULT_WORKSPACE_DIR
        assert config.globals.default_go_version == DEFAULT_GO_VERSION
        repo = config.repos[0]
        assert repo.platforms == ("linux/amd64",)
        assert repo.build == BuildOptions()
        assert repo.env == {}

    def test_version_takes_precedence(self) -> None:
        """version が空でなければ branch に関係なく version が対象になること."""
        config = parse_config({"repos": [_repo(version="v1.2.0", branch="dev")]}, environ={})

        assert config.repos[0].target_ref == "v1.2.0"

    def test_branch_fallback(self) -> None:
        config = parse_config({"repos": [_repo(version="", branch="main")]}, environ={})

        assert config.repos[0].target_ref == "main"

    def test_env_expansion_uses_snapshot(self) -> None:
        """文字列項目が渡した環境で展開されること."""
        environ = {"REF": "release", "BASE": "/srv/ws", "GOV": "1.23.4", "TOKEN": "s3cret"}
        data = {
            "globals": {"workspace_dir": "${BASE}", "default_go_version": "$GOV"},
            "repos": [_repo(branch="${REF}", go_version="$GOV", env={"AUTH": "Bearer $TOKEN"})],
        }

        config = parse_config(data, environ=environ)

        assert config.globals.workspace_dir == "/srv/ws"
        assert config.globals.default_go_version == "1.23.4"
        repo = config.repos[0]
        assert repo.branch == "release"
        assert repo.go_version == "1.23.4"
        assert repo.env == {"AUTH": "Bearer s3cret"}

    def test_build_args_not_expanded_at_load(self) -> None:
        """build_args はビルド時に展開するため読み込み時は生のまま保持されること."""
        data = {"repos": [_repo(build_args="build -o $OUTPUT ./cmd/demo")]}

        config = parse_config(data, environ={"OUTPUT": "nope"})

        assert config.repos[0].build_args == "build -o $OUTPUT ./cmd/demo"

    def test_structured_build_options(self) -> None:
        data = {
            "repos": [
                _repo(
                    build={
                        "tags": ["with_quic", "with_utls"],
                        "ldflags": "-X main.version=${REPO_TAG}",
                        "target": "./cmd/demo",
                        "strip": False,
                        "extra_args": ["-v"],
                    }
                )
            ]
        }

        build = parse_config(data, environ={}).repos[0].build

        assert build.tags == ("with_quic", "with_utls")
        assert build.ldflags == "-X main.version=${REPO_TAG}"
        assert build.target == "./cmd/demo"
        assert build.strip is False
        assert build.trimpath is True
        assert build.extra_args == ("-v",)

    def test_platforms_comma_string(self) -> None:
        config = parse_config({"repos": [_repo(platforms="linux/amd64, windows/amd64")]}, environ={})

        assert config.repos[0].platforms == ("linux/amd64", "windows/amd64")

    def test_both_version_and_branch_empty(self) -> None:
        """version と branch が展開後に両方空なら ConfigError になること."""
        data = {"repos": [_repo(version="$UNSET", branch="")]}

        with pytest.raises(ConfigError, match=r"repo\[0\] name=demo: both version and branch are empty"):
            parse_config(data, environ={})

    def test_missing_git_url(self) -> None:
        data = {"repos": [_repo(), _repo(name="other", git_url="")]}

        with pytest.raises(ConfigError, match=r"repo\[1\] name=other: git_url is required"):
            parse_config(data, environ={})

    def test_empty_platforms(self) -> None:
        with pytest.raises(ConfigError, match="platforms must be defined"):
            parse_config({"repos": [_repo(platforms=[])]}, environ={})

    def test_duplicate_names(self) -> None:
        with pytest.raises(ConfigError, match="duplicate repository name"):
            parse_config({"repos": [_repo(), _repo()]}, environ={})

    @pytest.mark.parametrize("field", ["strip", "trimpath"])
    def test_build_flag_must_be_bool(self, field: str) -> None:
        """文字列の "false" を真偽値として扱わず ConfigError にすること."""
        data = {"repos": [_repo(build={field: "false"})]}

        with pytest.raises(ConfigError, match=rf"repo\[0\] name=demo: build\.{field} must be true or false"):
            parse_config(data, environ={})

    def test_unbalanced_build_args(self) -> None:
        with pytest.raises(ConfigError, match="build_args cannot be tokenized"):
            parse_config({"repos": [_repo(build_args="build -ldflags '-s -w")]}, environ={})

    def test_repos_must_be_list(self) -> None:
        with pytest.raises(ConfigError, match="repos must be a list"):
            parse_config({"repos": {"name": "demo"}}, environ={})


class TestSelect:
    def test_keeps_config_order(self) -> None:
        config = parse_config({"repos": [_repo(name="a"), _repo(name="b"), _repo(name="c")]}, environ={})

        assert [r.name for r in config.select(["c", "a"])] == ["a", "c"]
        assert [r.name for r in config.select(None)] == ["a", "b", "c"]

    def test_unknown_name(self) -> None:
        config = parse_config({"repos": [_repo()]}, environ={})

        with pytest.raises(ConfigError, match="Unknown repository name"):
            config.select(["missing"])


class TestLoadConfig:
    def test_load_yaml(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yml"
        config_path.write_text(
            """
globals:
  workspace_dir: ${WS}
  default_go_version: "1.22"
repos:
  - name: demo
    git_url: https://example.com/demo.git
    branch: main
    platforms:
      - linux/amd64
      - windows/amd64
    build_args: build -o $OUTPUT .
    env:
      GOFLAGS: -mod=mod
""",
            encoding="utf-8",
        )

        config = load_config(config_path, environ={"WS": str(tmp_path / "ws")})

        assert config.globals.workspace_dir == str(tmp_path / "ws")
        assert config.globals.default_go_version == "1.22"
        assert config.repos[0].platforms == ("linux/amd64", "windows/amd64")
        assert config.repos[0].env == {"GOFLAGS": "-mod=mod"}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yml"
        config_path.write_text("repos: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_path)

    def test_empty_file(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.yml"
        config_path.write_text("", encoding="utf-8")

        config = load_config(config_path, environ={})

        assert config.repos == ()
