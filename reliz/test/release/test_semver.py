"""Tests for reliz.release.semver module."""

from __future__ import annotations

import pytest

from reliz.release.semver import Version, next_version, parse_version, suggest_bump


class TestNextVersion:
    """Test version arithmetic."""

    @pytest.mark.parametrize(
        ("current", "bump", "preid", "expected"),
        [
            ("1.2.3", "major", None, "2.0.0"),
            ("1.2.3", "minor", None, "1.3.0"),
            ("1.2.3", "patch", None, "1.2.4"),
            ("1.2.3", "hotfix", None, "1.2.3.1"),
            ("1.2.3", "patch", "beta", "1.2.4-beta.0"),
            ("1.2.4-beta.0", "patch", "beta", "1.2.4-beta.1"),
        ],
    )
    def test_reference_values(
        self, current: str, bump: str, preid: str | None, expected: str
    ) -> None:
        assert next_version(current, bump, preid) == expected

    def test_hotfix_on_four_part_version(self) -> None:
        assert next_version("1.2.3.4", "hotfix") == "1.2.3.5"

    def test_build_is_hotfix_alias(self) -> None:
        assert next_version("1.2.3", "build") == "1.2.3.1"

    def test_unknown_kind_behaves_like_patch(self) -> None:
        assert next_version("1.2.3", "sideways") == "1.2.4"

    def test_prerelease_suffix_is_dropped_by_plain_bump(self) -> None:
        assert next_version("1.2.4-beta.3", "patch") == "1.2.5"

    def test_different_preid_starts_at_zero(self) -> None:
        assert next_version("1.2.4-beta.2", "minor", "rc") == "1.3.0-rc.0"

    def test_preid_is_case_insensitive(self) -> None:
        assert next_version("2.0.0-RC.1", "patch", "rc") == "2.0.0-rc.2"

    def test_leading_v_is_tolerated(self) -> None:
        assert next_version("v1.2.3", "minor") == "1.3.0"

    def test_double_patch_increments_twice(self) -> None:
        assert next_version(next_version("1.2.9", "patch"), "patch") == "1.2.11"

    @pytest.mark.parametrize(
        "current",
        ["0.0.0", "1.2.3", "1.2.3.4", "1.9.9", "2.0.0-beta.0", "1.2.3+build.5"],
    )
    @pytest.mark.parametrize("bump", ["patch", "minor", "major", "hotfix"])
    def test_strictly_increases(self, current: str, bump: str) -> None:
        before = parse_version(current)
        after = parse_version(next_version(current, bump))
        assert before is not None and after is not None
        assert after > before

    def test_build_metadata_is_ignored(self) -> None:
        assert next_version("1.2.3+build.5", "patch") == "1.2.4"
        assert next_version("1.2.3-beta.0+sha.1f2e", "patch", "beta") == "1.2.3-beta.1"
        assert parse_version("1.2.3+build.5") == Version(1, 2, 3)

    def test_prerelease_strictly_increases(self) -> None:
        versions = ["1.0.0"]
        for _ in range(3):
            versions.append(next_version(versions[-1], "patch", "alpha"))
        assert versions == ["1.0.0", "1.0.1-alpha.0", "1.0.1-alpha.1", "1.0.1-alpha.2"]
        parsed = [parse_version(v) for v in versions]
        assert parsed == sorted(parsed)  # type: ignore[type-var]


class TestVersion:
    def test_parse(self) -> None:
        assert parse_version("1.2.3") == Version(1, 2, 3)
        assert parse_version("1.2.3.4") == Version(1, 2, 3, build=4)
        assert parse_version("1.2.3-beta.2") == Version(1, 2, 3, pre=("beta", 2))

    def test_parse_invalid(self) -> None:
        assert parse_version("not-a-version") is None

    def test_prerelease_sorts_below_release(self) -> None:
        assert Version(1, 0, 0, pre=("rc", 1)) < Version(1, 0, 0)

    def test_str(self) -> None:
        assert str(Version(1, 2, 3, build=1)) == "1.2.3.1"
        assert str(Version(1, 2, 4, pre=("beta", 0))) == "1.2.4-beta.0"


class TestSuggestBump:
    """Test conventional-commit bump suggestion."""

    def test_fix_is_patch(self) -> None:
        assert suggest_bump(["fix: x"]) == "patch"

    def test_feat_outranks_fix(self) -> None:
        assert suggest_bump(["feat: y", "fix: x"]) == "minor"

    def test_order_does_not_matter(self) -> None:
        assert suggest_bump(["fix: x", "feat: y"]) == "minor"

    def test_bang_is_major(self) -> None:
        assert suggest_bump(["feat!: z"]) == "major"

    def test_scoped_bang_is_major(self) -> None:
        assert suggest_bump(["fix: x", "refactor(api)!: drop v1"]) == "major"

    def test_breaking_change_trailer(self) -> None:
        assert suggest_bump(["chore: deps\n\nBREAKING CHANGE: node 20 required"]) == "major"

    def test_scope_is_allowed(self) -> None:
        assert suggest_bump(["feat(cli): add --ci"]) == "minor"

    def test_nothing_qualifies(self) -> None:
        assert suggest_bump(["chore: w"]) is None
        assert suggest_bump([]) is None
