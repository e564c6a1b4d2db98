"""Configuration resolution.

Four layers are merged, lowest precedence first:

1. built-in defaults (``default_tree``)
2. a project config file (``.reliz.json``, ``.relizrc.json``, ``.reliz.toml``
   or the ``"reliz"`` field of ``package.json``)
3. ``RELIZ_*`` environment toggles
4. command-line flags

Mappings merge recursively; lists and scalars are replaced wholesale by the
higher layer. The merged tree is then frozen into the typed ``Config``.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from .errors import ReleaseError
from .options import BUMP_KINDS, BumpKind, InvocationOptions, parse_argv
from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_raw_str,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CI_VENDOR_VARS",
    "CONFIG_FILENAMES",
    "BranchesConfig",
    "ChangelogConfig",
    "Config",
    "ConfigSource",
    "GitConfig",
    "GitHubConfig",
    "GitLabConfig",
    "HooksConfig",
    "NpmConfig",
    "ResolvedConfig",
    "TagConfig",
    "deep_merge",
    "default_tree",
    "discover_config_file",
    "env_layer",
    "is_ci_env",
    "load_config_file",
    "merge_layers",
    "resolve",
]

CONFIG_FILENAMES = (".reliz.json", ".relizrc.json", ".reliz.toml")
MANIFEST_FILENAME = "package.json"
MANIFEST_CONFIG_KEY = "reliz"

CI_VENDOR_VARS = ("GITHUB_ACTIONS", "GITLAB_CI", "CIRCLECI", "TRAVIS", "JENKINS_URL")

DEFAULT_COMMIT_MESSAGE = "release: update version to ${version} and changelog"
DEFAULT_TAG_MESSAGE = "Release-${version}"


def default_tree() -> StrDict:
    """Every recognised key with its default value (fresh copy per call)."""
    return {
        "gitFlow": True,
        "git": {"requireUpstream": False, "pushArgs": ["--follow-tags"]},
        "branches": {"main": "main", "develop": "develop"},
        "releaseBranchPrefix": "release/",
        "changelog": {
            "dateLocale": "fa-IR",
            "path": "CHANGELOG.md",
            "template": None,
            "command": None,
            "releaseNotesCommand": None,
            "includeTypes": None,
            "groupByType": False,
        },
        "tag": {"prefix": "v", "deleteIfExists": True},
        "syncBranches": True,
        "requireCleanWorkingDir": True,
        "allowReleaseFrom": ["develop"],
        "hooks": {
            "beforeInit": [],
            "beforeRelease": [],
            "afterBump": [],
            "afterGitRelease": [],
            "afterRelease": [],
        },
        "npm": {"publish": False, "publishPath": ".", "tag": "latest", "otp": None},
        "github": {
            "release": False,
            "tokenRef": "GITHUB_TOKEN",
            "draft": False,
            "preRelease": False,
        },
        "gitlab": {"release": False, "tokenRef": "GITLAB_TOKEN"},
        "conventionalCommits": False,
        "commitMessage": DEFAULT_COMMIT_MESSAGE,
        "tagMessage": DEFAULT_TAG_MESSAGE,
        "preRelease": {"id": None},
        "plugins": [],
    }


def deep_merge(base: Mapping[str, object], override: Mapping[str, object]) -> StrDict:
    """Merge ``override`` onto ``base`` without mutating either.

    Nested mappings recurse; every other value (lists included) replaces the
    base value. An explicit ``None`` replaces too, which lets a file switch a
    list-valued default off.
    """
    out: StrDict = dict(base)
    for key, value in override.items():
        nested = as_str_dict(value)
        if nested is not None:
            current = as_str_dict(out.get(key)) or {}
            out[key] = deep_merge(current, nested)
        else:
            out[key] = value
    return out


def merge_layers(*layers: Mapping[str, object]) -> StrDict:
    """Fold layers left to right, later layers winning."""
    merged: StrDict = {}
    for layer in layers:
        merged = deep_merge(merged, layer)
    return merged


# -----------------------------------------------------------------------------
# Typed view
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GitConfig:
    require_upstream: bool = False
    push_args: tuple[str, ...] = ("--follow-tags",)


@dataclass(frozen=True, slots=True)
class BranchesConfig:
    main: str = "main"
    develop: str = "develop"


@dataclass(frozen=True, slots=True)
class ChangelogConfig:
    """Changelog settings.

    ``command`` and ``release_notes_command`` are shell templates; when
    ``command`` is set its output replaces the built-in commit formatting.
    """

    date_locale: str = "fa-IR"
    path: str = "CHANGELOG.md"
    template: str | None = None
    command: str | None = None
    release_notes_command: str | None = None
    include_types: tuple[str, ...] | None = None
    group_by_type: bool = False


@dataclass(frozen=True, slots=True)
class TagConfig:
    prefix: str = "v"
    delete_if_exists: bool = True

    def name_for(self, version: str) -> str:
        return f"{self.prefix}{version}"


@dataclass(frozen=True, slots=True)
class HooksConfig:
    """Shell command lists keyed by lifecycle hook name."""

    before_init: tuple[str, ...] = ()
    before_release: tuple[str, ...] = ()
    after_bump: tuple[str, ...] = ()
    after_git_release: tuple[str, ...] = ()
    after_release: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class NpmConfig:
    publish: bool = False
    publish_path: str = "."
    tag: str = "latest"
    otp: str | None = None


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    release: bool = False
    token_ref: str = "GITHUB_TOKEN"
    draft: bool = False
    pre_release: bool = False


@dataclass(frozen=True, slots=True)
class GitLabConfig:
    release: bool = False
    token_ref: str = "GITLAB_TOKEN"


def _empty_strs() -> tuple[str, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class Config:
    """Resolved, immutable configuration for one run."""

    git_flow: bool = True
    git: GitConfig = field(default_factory=GitConfig)
    branches: BranchesConfig = field(default_factory=BranchesConfig)
    release_branch_prefix: str = "release/"
    changelog: ChangelogConfig = field(default_factory=ChangelogConfig)
    tag: TagConfig = field(default_factory=TagConfig)
    sync_branches: bool = True
    require_clean_working_dir: bool = True
    allow_release_from: tuple[str, ...] = ("develop",)
    hooks: HooksConfig = field(default_factory=HooksConfig)
    npm: NpmConfig = field(default_factory=NpmConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    gitlab: GitLabConfig = field(default_factory=GitLabConfig)
    conventional_commits: bool = False
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    tag_message: str = DEFAULT_TAG_MESSAGE
    pre_release_id: str | None = None
    plugins: tuple[str, ...] = field(default_factory=_empty_strs)
    ci: bool | None = None
    dry_run: bool = False
    bump: BumpKind | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Build the typed view from a merged tree; wrong types fall back to defaults."""
        git = get_table(data, "git") or {}
        branches = get_table(data, "branches") or {}
        changelog = get_table(data, "changelog") or {}
        tag = get_table(data, "tag") or {}
        hooks = get_table(data, "hooks") or {}
        npm = get_table(data, "npm") or {}
        github = get_table(data, "github") or {}
        gitlab = get_table(data, "gitlab") or {}
        pre_release = get_table(data, "preRelease") or {}

        prefix = tag.get("prefix")
        bump = get_str(data, "bump")
        allow = data.get("allowReleaseFrom", ("develop",))

        return cls(
            git_flow=_flag(data, "gitFlow", True),
            git=GitConfig(
                require_upstream=_flag(git, "requireUpstream", False),
                push_args=_strs(git, "pushArgs", ("--follow-tags",)),
            ),
            branches=BranchesConfig(
                main=get_str(branches, "main") or "main",
                develop=get_str(branches, "develop") or "develop",
            ),
            release_branch_prefix=get_raw_str(data, "releaseBranchPrefix") or "release/",
            changelog=ChangelogConfig(
                date_locale=get_str(changelog, "dateLocale") or "fa-IR",
                path=get_str(changelog, "path") or "CHANGELOG.md",
                template=get_raw_str(changelog, "template"),
                command=get_str(changelog, "command"),
                release_notes_command=get_str(changelog, "releaseNotesCommand"),
                include_types=_include_types(changelog),
                group_by_type=_flag(changelog, "groupByType", False),
            ),
            tag=TagConfig(
                prefix=prefix if isinstance(prefix, str) else "v",
                delete_if_exists=_flag(tag, "deleteIfExists", True),
            ),
            sync_branches=_flag(data, "syncBranches", True),
            require_clean_working_dir=_flag(data, "requireCleanWorkingDir", True),
            allow_release_from=()
            if allow is None
            else _strs(data, "allowReleaseFrom", ("develop",)),
            hooks=HooksConfig(
                before_init=_strs(hooks, "beforeInit", ()),
                before_release=_strs(hooks, "beforeRelease", ()),
                after_bump=_strs(hooks, "afterBump", ()),
                after_git_release=_strs(hooks, "afterGitRelease", ()),
                after_release=_strs(hooks, "afterRelease", ()),
            ),
            npm=NpmConfig(
                publish=_flag(npm, "publish", False),
                publish_path=get_str(npm, "publishPath") or ".",
                tag=get_str(npm, "tag") or "latest",
                otp=get_str(npm, "otp"),
            ),
            github=GitHubConfig(
                release=_flag(github, "release", False),
                token_ref=get_str(github, "tokenRef") or "GITHUB_TOKEN",
                draft=_flag(github, "draft", False),
                pre_release=_flag(github, "preRelease", False),
            ),
            gitlab=GitLabConfig(
                release=_flag(gitlab, "release", False),
                token_ref=get_str(gitlab, "tokenRef") or "GITLAB_TOKEN",
            ),
            conventional_commits=_flag(data, "conventionalCommits", False),
            commit_message=get_raw_str(data, "commitMessage") or DEFAULT_COMMIT_MESSAGE,
            tag_message=get_raw_str(data, "tagMessage") or DEFAULT_TAG_MESSAGE,
            pre_release_id=get_str(pre_release, "id"),
            plugins=_strs(data, "plugins", ()),
            ci=get_bool(data, "ci"),
            dry_run=get_bool(data, "dryRun") is True,
            bump=bump if bump in BUMP_KINDS else None,  # type: ignore[arg-type]
        )


def _flag(table: Mapping[str, object], key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _strs(table: Mapping[str, object], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = get_str_list(table, key)
    return default if value is None else value


def _include_types(changelog: Mapping[str, object]) -> tuple[str, ...] | None:
    types = get_str_list(changelog, "includeTypes")
    if not types:
        return None
    return tuple(t.strip().lower() for t in types)


# -----------------------------------------------------------------------------
# Sources
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """A discovered config file. ``from_manifest`` marks the package.json field."""

    path: Path
    from_manifest: bool = False


def discover_config_file(
    cwd: Path, explicit: str | None
) -> Result[ConfigSource | None, ReleaseError]:
    """Find the config file for ``cwd``.

    An explicit path must exist. Otherwise the conventional names are tried in
    order, then the ``reliz`` field of package.json; finding nothing is fine.
    """
    if explicit:
        path = Path(explicit)
        if not path.is_absolute():
            path = cwd / path
        if not path.is_file():
            return Err(
                ReleaseError(
                    kind="config",
                    message=f"Config file not found: {path}",
                    hint="check the --config path",
                )
            )
        return Ok(ConfigSource(path=path))

    for name in CONFIG_FILENAMES:
        path = cwd / name
        if path.is_file():
            return Ok(ConfigSource(path=path))

    manifest = cwd / MANIFEST_FILENAME
    if manifest.is_file():
        try:
            pkg: object = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return Ok(None)
        pkg_dict = as_str_dict(pkg)
        if pkg_dict is not None and pkg_dict.get(MANIFEST_CONFIG_KEY) is not None:
            return Ok(ConfigSource(path=manifest, from_manifest=True))

    return Ok(None)


def load_config_file(source: ConfigSource) -> tuple[StrDict, str | None]:
    """Parse a config source leniently.

    Returns:
        (tree, warning): an empty tree and a warning when the file cannot be used.
    """
    path = source.path
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ({}, f"could not read {path.name}: {e}; using defaults")

    data: object
    if path.suffix == ".toml":
        import tomllib

        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            return ({}, f"invalid TOML in {path.name}: {e}; using defaults")
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return ({}, f"invalid JSON in {path.name}: {e}; using defaults")

    tree = as_str_dict(data)
    if tree is not None and source.from_manifest:
        tree = as_str_dict(tree.get(MANIFEST_CONFIG_KEY))
    if tree is None:
        return ({}, f"config in {path.name} is not an object; using defaults")
    return (tree, None)


def _truthy(value: str | None) -> bool:
    return value in ("1", "true")


def env_layer(env: Mapping[str, str]) -> StrDict:
    """Config overrides taken from ``RELIZ_*`` variables.

    Toggles can only be switched on; an unknown ``RELIZ_BUMP`` is ignored.
    """
    out: StrDict = {}
    if _truthy(env.get("RELIZ_CI")):
        out["ci"] = True
    if _truthy(env.get("RELIZ_DRY_RUN")):
        out["dryRun"] = True
    if _truthy(env.get("RELIZ_NO_GIT_FLOW")):
        out["gitFlow"] = False
    bump = env.get("RELIZ_BUMP")
    if bump in BUMP_KINDS:
        out["bump"] = bump
    preid = (env.get("RELIZ_PREID") or "").strip()
    if preid:
        out["preRelease"] = {"id": preid}
    return out


def argv_layer(options: InvocationOptions) -> StrDict:
    out: StrDict = {}
    if options.ci:
        out["ci"] = True
    if options.dry_run:
        out["dryRun"] = True
    if options.no_git_flow:
        out["gitFlow"] = False
    if options.bump:
        out["bump"] = options.bump
    if options.preid:
        out["preRelease"] = {"id": options.preid}
    return out


def is_ci_env(env: Mapping[str, str]) -> bool:
    """True when a generic or vendor-specific CI variable is present."""
    if env.get("CI") in ("true", "1"):
        return True
    return any(env.get(name) for name in CI_VENDOR_VARS)


@dataclass(frozen=True, slots=True)
class ResolvedConfig:
    """Output of ``resolve``: the config, effective options and any warnings."""

    config: Config
    options: InvocationOptions
    source: ConfigSource | None = None
    warnings: tuple[str, ...] = ()


def resolve(
    cwd: Path,
    argv: Sequence[str],
    env: Mapping[str, str] | None = None,
) -> Result[ResolvedConfig, ReleaseError]:
    """Merge defaults, file, environment and argv into one configuration.

    Pure with respect to its inputs: ``env`` defaults to a snapshot of
    ``os.environ`` and nothing passed in is mutated.
    """
    environ: Mapping[str, str] = dict(os.environ) if env is None else env
    parsed = parse_argv(argv)
    warnings: list[str] = [f"ignoring unknown argument: {token}" for token in parsed.ignored]

    found = discover_config_file(cwd, parsed.config_path)
    if isinstance(found, Err):
        return found
    source = found.value

    file_tree: StrDict = {}
    if source is not None:
        file_tree, warning = load_config_file(source)
        if warning:
            warnings.append(warning)

    tree = merge_layers(default_tree(), file_tree, env_layer(environ), argv_layer(parsed))
    config = Config.from_dict(tree)

    ci = config.ci is True or (config.ci is not False and is_ci_env(environ))
    config = replace(config, ci=ci)

    options = replace(
        parsed,
        bump=config.bump,
        ci=ci,
        dry_run=config.dry_run,
        no_git_flow=not config.git_flow,
        yes=parsed.yes or _truthy(environ.get("RELIZ_YES")),
        preid=config.pre_release_id,
    )
    return Ok(ResolvedConfig(config=config, options=options, source=source, warnings=tuple(warnings)))
