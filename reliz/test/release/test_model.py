"""Tests for reliz.release.model module."""

from __future__ import annotations

from pathlib import Path

import pytest

from reliz.core.options import InvocationOptions
from reliz.release.model import ContextFieldError

from ._fakes import make_context


class TestReleaseContext:
    """The context only accepts values for fields that are still unset."""

    def test_unset_fields_can_be_filled(self, tmp_path: Path) -> None:
        ctx = make_context(tmp_path)
        ctx.next_version = "1.1.0"
        assert ctx.next_version == "1.1.0"

    def test_same_value_is_noop(self, tmp_path: Path) -> None:
        ctx = make_context(tmp_path, tag_name="v1.1.0")
        ctx.tag_name = "v1.1.0"
        assert ctx.tag_name == "v1.1.0"

    def test_decided_field_cannot_change(self, tmp_path: Path) -> None:
        ctx = make_context(tmp_path, next_version="1.1.0")
        with pytest.raises(ContextFieldError, match="next_version"):
            ctx.next_version = "2.0.0"

    def test_error_is_attribute_error(self) -> None:
        assert issubclass(ContextFieldError, AttributeError)

    def test_commits_accumulate(self, tmp_path: Path) -> None:
        ctx = make_context(tmp_path)
        ctx.commits.append("fix: a")
        ctx.commits.extend(["feat: b"])
        assert ctx.commits == ["fix: a", "feat: b"]

    def test_is_ci_follows_options(self, tmp_path: Path) -> None:
        assert make_context(tmp_path, options=InvocationOptions(ci=True)).is_ci
        assert not make_context(tmp_path).is_ci


class TestVariables:
    def test_only_set_scalars(self, tmp_path: Path) -> None:
        ctx = make_context(
            tmp_path,
            project_name="widget",
            current_version="1.0.0",
            next_version="1.1.0",
            tag_name="v1.1.0",
        )
        variables = ctx.variables()

        assert variables["version"] == "1.1.0"
        assert variables["newVersion"] == "1.1.0"
        assert variables["latestVersion"] == "1.0.0"
        assert variables["name"] == "widget"
        assert variables["tagName"] == "v1.1.0"
        assert variables["dryRun"] is False
        assert variables["cwd"] == str(tmp_path)
        assert "releaseUrl" not in variables
        assert "changelog" not in variables
