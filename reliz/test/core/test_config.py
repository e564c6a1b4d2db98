"""Tests for reliz.core.config module."""

from __future__ import annotations

import json
from pathlib import Path

from reliz.core.config import (
    Config,
    ConfigSource,
    deep_merge,
    default_tree,
    discover_config_file,
    env_layer,
    is_ci_env,
    load_config_file,
    merge_layers,
    resolve,
)
from reliz.core.result import Err, Ok


def _write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# =============================================================================
# Merging
# =============================================================================


class TestDeepMerge:
    """Test layered merging of untyped trees."""

    def test_nested_tables_merge(self) -> None:
        base = {"tag": {"prefix": "v", "deleteIfExists": True}}
        override = {"tag": {"prefix": "rel-"}}
        assert deep_merge(base, override) == {"tag": {"prefix": "rel-", "deleteIfExists": True}}

    def test_lists_are_replaced(self) -> None:
        base = {"allowReleaseFrom": ["develop"]}
        override = {"allowReleaseFrom": ["main", "release"]}
        assert deep_merge(base, override) == {"allowReleaseFrom": ["main", "release"]}

    def test_none_replaces(self) -> None:
        assert deep_merge({"allowReleaseFrom": ["develop"]}, {"allowReleaseFrom": None}) == {
            "allowReleaseFrom": None
        }

    def test_inputs_are_not_mutated(self) -> None:
        base = {"git": {"pushArgs": ["--follow-tags"]}}
        override = {"git": {"requireUpstream": True}}
        deep_merge(base, override)
        assert base == {"git": {"pushArgs": ["--follow-tags"]}}
        assert override == {"git": {"requireUpstream": True}}

    def test_merge_is_associative(self) -> None:
        a = {"changelog": {"path": "A.md", "groupByType": False}, "gitFlow": True}
        b = {"changelog": {"path": "B.md"}, "tag": {"prefix": "b"}}
        c = {"changelog": {"groupByType": True}, "tag": {"deleteIfExists": False}}

        left = deep_merge(deep_merge(a, b), c)
        right = deep_merge(a, deep_merge(b, c))
        assert left == right == merge_layers(a, b, c)

    def test_merge_layers_later_wins(self) -> None:
        assert merge_layers({"gitFlow": True}, {"gitFlow": False}, {}) == {"gitFlow": False}


class TestConfigFromDict:
    """Test the typed view."""

    def test_defaults_tree_matches_dataclass_defaults(self) -> None:
        assert Config.from_dict(default_tree()) == Config()

    def test_empty_tree_gives_defaults(self) -> None:
        assert Config.from_dict({}) == Config()

    def test_default_values(self) -> None:
        config = Config()
        assert config.git_flow is True
        assert config.allow_release_from == ("develop",)
        assert config.changelog.date_locale == "fa-IR"
        assert config.tag.prefix == "v"
        assert config.tag.delete_if_exists is True
        assert config.git.push_args == ("--follow-tags",)
        assert config.github.token_ref == "GITHUB_TOKEN"
        assert config.gitlab.token_ref == "GITLAB_TOKEN"

    def test_wrong_types_fall_back(self) -> None:
        config = Config.from_dict({"gitFlow": "yes", "tag": {"prefix": 3}, "plugins": 5})
        assert config.git_flow is True
        assert config.tag.prefix == "v"
        assert config.plugins == ()

    def test_hook_string_is_single_command(self) -> None:
        config = Config.from_dict({"hooks": {"afterRelease": "echo done"}})
        assert config.hooks.after_release == ("echo done",)

    def test_include_types_normalised(self) -> None:
        config = Config.from_dict({"changelog": {"includeTypes": ["Feat", " fix "]}})
        assert config.changelog.include_types == ("feat", "fix")

    def test_empty_prefix_is_allowed(self) -> None:
        assert Config.from_dict({"tag": {"prefix": ""}}).tag.name_for("1.0.0") == "1.0.0"

    def test_allow_release_from_null_disables_check(self) -> None:
        config = Config.from_dict(deep_merge(default_tree(), {"allowReleaseFrom": None}))
        assert config.allow_release_from == ()

    def test_unknown_bump_is_dropped(self) -> None:
        assert Config.from_dict({"bump": "gigantic"}).bump is None


# =============================================================================
# Sources
# =============================================================================


class TestDiscoverConfigFile:
    def test_nothing_found(self, tmp_path: Path) -> None:
        assert discover_config_file(tmp_path, None) == Ok(None)

    def test_conventional_names_in_order(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".relizrc.json", {})
        _write_json(tmp_path / ".reliz.json", {})
        result = discover_config_file(tmp_path, None)
        assert isinstance(result, Ok)
        assert result.value is not None
        assert result.value.path.name == ".reliz.json"

    def test_manifest_field(self, tmp_path: Path) -> None:
        _write_json(tmp_path / "package.json", {"name": "x", "reliz": {"gitFlow": False}})
        result = discover_config_file(tmp_path, None)
        assert isinstance(result, Ok)
        assert result.value == ConfigSource(path=tmp_path / "package.json", from_manifest=True)

    def test_manifest_without_field(self, tmp_path: Path) -> None:
        _write_json(tmp_path / "package.json", {"name": "x"})
        assert discover_config_file(tmp_path, None) == Ok(None)

    def test_explicit_relative_path(self, tmp_path: Path) -> None:
        _write_json(tmp_path / "custom.json", {})
        result = discover_config_file(tmp_path, "custom.json")
        assert result == Ok(ConfigSource(path=tmp_path / "custom.json"))

    def test_explicit_missing_path_is_error(self, tmp_path: Path) -> None:
        result = discover_config_file(tmp_path, "missing.json")
        assert isinstance(result, Err)
        assert result.error.kind == "config"
        assert "missing.json" in result.error.message


class TestLoadConfigFile:
    def test_json(self, tmp_path: Path) -> None:
        path = _write_json(tmp_path / ".reliz.json", {"gitFlow": False})
        assert load_config_file(ConfigSource(path=path)) == ({"gitFlow": False}, None)

    def test_toml(self, tmp_path: Path) -> None:
        path = tmp_path / ".reliz.toml"
        path.write_text('gitFlow = false\n\n[changelog]\ndateLocale = "en-US"\n', encoding="utf-8")
        tree, warning = load_config_file(ConfigSource(path=path))
        assert warning is None
        assert tree == {"gitFlow": False, "changelog": {"dateLocale": "en-US"}}

    def test_malformed_json_warns(self, tmp_path: Path) -> None:
        path = tmp_path / ".reliz.json"
        path.write_text("{not json", encoding="utf-8")
        tree, warning = load_config_file(ConfigSource(path=path))
        assert tree == {}
        assert warning is not None
        assert "invalid JSON" in warning

    def test_non_object_warns(self, tmp_path: Path) -> None:
        path = _write_json(tmp_path / ".reliz.json", [1, 2])
        tree, warning = load_config_file(ConfigSource(path=path))
        assert tree == {}
        assert warning is not None

    def test_manifest_field_is_extracted(self, tmp_path: Path) -> None:
        path = _write_json(tmp_path / "package.json", {"name": "x", "reliz": {"syncBranches": False}})
        tree, warning = load_config_file(ConfigSource(path=path, from_manifest=True))
        assert tree == {"syncBranches": False}
        assert warning is None


class TestEnvironment:
    """Test RELIZ_* toggles and CI detection."""

    def test_env_layer_toggles(self) -> None:
        env = {
            "RELIZ_CI": "1",
            "RELIZ_DRY_RUN": "true",
            "RELIZ_NO_GIT_FLOW": "1",
            "RELIZ_BUMP": "minor",
            "RELIZ_PREID": " rc ",
        }
        assert env_layer(env) == {
            "ci": True,
            "dryRun": True,
            "gitFlow": False,
            "bump": "minor",
            "preRelease": {"id": "rc"},
        }

    def test_env_layer_ignores_falsy_and_unknown(self) -> None:
        env = {"RELIZ_CI": "0", "RELIZ_DRY_RUN": "no", "RELIZ_BUMP": "huge"}
        assert env_layer(env) == {}

    def test_ci_generic(self) -> None:
        assert is_ci_env({"CI": "true"})
        assert is_ci_env({"CI": "1"})
        assert not is_ci_env({"CI": "false"})

    def test_ci_vendor(self) -> None:
        assert is_ci_env({"GITLAB_CI": "true"})
        assert is_ci_env({"JENKINS_URL": "http://ci"})

    def test_not_ci(self) -> None:
        assert not is_ci_env({})


# =============================================================================
# resolve
# =============================================================================


class TestResolve:
    """Test the full layered resolution."""

    def test_defaults(self, tmp_path: Path) -> None:
        result = resolve(tmp_path, [], {})
        assert isinstance(result, Ok)
        resolved = result.value
        assert resolved.config == Config(ci=False)
        assert resolved.source is None
        assert resolved.warnings == ()
        assert resolved.options.ci is False

    def test_file_layer(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".reliz.json", {"gitFlow": False, "tag": {"prefix": "rel-"}})
        result = resolve(tmp_path, [], {})
        assert isinstance(result, Ok)
        config = result.value.config
        assert config.git_flow is False
        assert config.tag.prefix == "rel-"
        assert config.tag.delete_if_exists is True
        assert result.value.options.no_git_flow is True

    def test_argv_beats_file(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".reliz.json", {"gitFlow": True, "bump": "major"})
        result = resolve(tmp_path, ["--no-git-flow", "minor"], {})
        assert isinstance(result, Ok)
        assert result.value.config.git_flow is False
        assert result.value.options.bump == "minor"

    def test_argv_beats_env(self, tmp_path: Path) -> None:
        result = resolve(tmp_path, ["--preid=beta"], {"RELIZ_PREID": "alpha"})
        assert isinstance(result, Ok)
        assert result.value.options.preid == "beta"

    def test_env_beats_file(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".reliz.json", {"bump": "major"})
        result = resolve(tmp_path, [], {"RELIZ_BUMP": "patch"})
        assert isinstance(result, Ok)
        assert result.value.options.bump == "patch"

    def test_ci_from_environment(self, tmp_path: Path) -> None:
        result = resolve(tmp_path, [], {"GITHUB_ACTIONS": "true"})
        assert isinstance(result, Ok)
        assert result.value.options.ci is True
        assert result.value.config.ci is True

    def test_file_can_force_ci_off(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".reliz.json", {"ci": False})
        result = resolve(tmp_path, [], {"CI": "true"})
        assert isinstance(result, Ok)
        assert result.value.options.ci is False

    def test_yes_from_environment(self, tmp_path: Path) -> None:
        result = resolve(tmp_path, [], {"RELIZ_YES": "1"})
        assert isinstance(result, Ok)
        assert result.value.options.yes is True

    def test_dry_run_from_file(self, tmp_path: Path) -> None:
        _write_json(tmp_path / ".reliz.json", {"dryRun": True})
        result = resolve(tmp_path, [], {})
        assert isinstance(result, Ok)
        assert result.value.options.dry_run is True

    def test_explicit_missing_config_is_error(self, tmp_path: Path) -> None:
        result = resolve(tmp_path, ["--config", "nope.json"], {})
        assert isinstance(result, Err)
        assert result.error.kind == "config"

    def test_malformed_file_warns_and_uses_defaults(self, tmp_path: Path) -> None:
        (tmp_path / ".reliz.json").write_text("{", encoding="utf-8")
        result = resolve(tmp_path, [], {})
        assert isinstance(result, Ok)
        assert result.value.config.git_flow is True
        assert len(result.value.warnings) == 1

    def test_unknown_arguments_warn(self, tmp_path: Path) -> None:
        result = resolve(tmp_path, ["--shiny"], {})
        assert isinstance(result, Ok)
        assert result.value.warnings == ("ignoring unknown argument: --shiny",)

    def test_manifest_field_config(self, tmp_path: Path) -> None:
        _write_json(
            tmp_path / "package.json",
            {"name": "demo", "version": "1.0.0", "reliz": {"conventionalCommits": True}},
        )
        result = resolve(tmp_path, [], {})
        assert isinstance(result, Ok)
        assert result.value.config.conventional_commits is True

    def test_environment_is_not_mutated(self, tmp_path: Path) -> None:
        env = {"RELIZ_CI": "1", "RELIZ_BUMP": "minor"}
        snapshot = dict(env)
        resolve(tmp_path, ["--dry-run"], env)
        assert env == snapshot
