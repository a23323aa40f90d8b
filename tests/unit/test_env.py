"""Unit tests for environment expansion and fallback resolution."""

from go_multibuild.core.env import expand_env, first_non_empty, merge_environment


class TestExpandEnv:
    def test_bare_and_braced(self) -> None:
        """$NAME と ${NAME} の両方が展開されること."""
        env = {"HOME": "/home/ci", "VER": "1.2.3"}

        assert expand_env("$HOME/work", env) == "/home/ci/work"
        assert expand_env("v${VER}-rc", env) == "v1.2.3-rc"

    def test_undefined_becomes_empty(self) -> None:
        """未定義の変数は空文字になること."""
        assert expand_env("a-${MISSING}-b-$ALSO_MISSING", {}) == "a--b-"

    def test_none_and_empty(self) -> None:
        assert expand_env(None, {"X": "1"}) == ""
        assert expand_env("", {"X": "1"}) == ""

    def test_dollar_without_name_is_kept(self) -> None:
        """変数名が続かない $ はそのまま残ること."""
        assert expand_env("cost: 5$ / $1", {}) == "cost: 5$ / $1"

    def test_uses_snapshot_only(self, monkeypatch) -> None:
        """os.environ ではなく渡されたスナップショットを参照すること."""
        monkeypatch.setenv("ONLY_IN_PROCESS", "yes")

        assert expand_env("$ONLY_IN_PROCESS", {}) == ""


class TestFirstNonEmpty:
    def test_first_wins(self) -> None:
        assert first_non_empty("v1.0.0", "main") == "v1.0.0"

    def test_falls_back(self) -> None:
        assert first_non_empty("", None, "main") == "main"

    def test_all_empty(self) -> None:
        assert first_non_empty("", None) == ""


class TestMergeEnvironment:
    def test_later_layers_win(self) -> None:
        merged = merge_environment({"A": "base", "B": "base"}, {"A": "one"}, {"A": "two", "C": "two"})

        assert merged == {"A": "two", "B": "base", "C": "two"}

    def test_base_not_mutated(self) -> None:
        base = {"A": "base"}

        merge_environment(base, {"A": "changed"})

        assert base == {"A": "base"}
