"""Selector enumeration: interpolation, anchoring, ranking and symlinks."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from lib_cue_config.adapters.selectors.default import DefaultSelectorEnumerator, interpolate, rank_key
from lib_cue_config.domain.errors import InterpolationError
from lib_cue_config.domain.selector import FileSelector
from tests.support import ConfigSandbox, create_config_sandbox


@pytest.fixture()
def sandbox(tmp_path: Path) -> ConfigSandbox:
    return create_config_sandbox(tmp_path)


def _names(paths) -> list[str]:
    return [path.name for path in paths]


def test_interpolate_context_and_environment() -> None:
    environ = {"APP": "billing"}
    assert interpolate("{getContextDir()}/{APP}.cue", Path("/srv"), environ) == "/srv/billing.cue"
    assert interpolate("{CONTEXT_DIR}/x", Path("/srv"), environ) == "/srv/x"


def test_interpolate_leaves_regex_quantifiers_alone() -> None:
    assert interpolate(r"^v\d{2,3}\.json$", Path("/srv"), {}) == r"^v\d{2,3}\.json$"


@pytest.mark.parametrize("environ", [{}, {"APP": ""}], ids=["unset", "empty"])
def test_interpolate_missing_variable(environ) -> None:
    with pytest.raises(InterpolationError, match="APP"):
        interpolate("{APP}/config.json", Path("/srv"), environ)


def test_relative_literal_is_anchored_at_context(sandbox: ConfigSandbox) -> None:
    target = sandbox.write("conf/app.json", {})
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert list(enumerator.enumerate(FileSelector.for_path("conf/app.json"))) == [target]
    assert enumerator.anchor("conf/app.json") == target
    assert enumerator.anchor("") == sandbox.root


def test_anchor_collapses_dot_segments(sandbox: ConfigSandbox) -> None:
    target = sandbox.write("app.json", {})
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert enumerator.anchor("conf/.././app.json") == target
    assert list(enumerator.enumerate(FileSelector.for_path("missing/../app.json"))) == [target]


def test_missing_literal_yields_nothing(sandbox: ConfigSandbox) -> None:
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert list(enumerator.enumerate(FileSelector.for_path("absent.json"))) == []


def test_literal_directory_is_not_a_match(sandbox: ConfigSandbox) -> None:
    sandbox.path("conf.json").mkdir()
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert list(enumerator.enumerate(FileSelector.for_path("conf.json"))) == []


def test_callable_context_is_evaluated_per_call(sandbox: ConfigSandbox) -> None:
    first = sandbox.write("one/app.json", {})
    second = sandbox.write("two/app.json", {})
    current = [sandbox.path("one")]
    enumerator = DefaultSelectorEnumerator(lambda: current[0], environ={})
    selector = FileSelector.for_path("app.json")
    assert list(enumerator.enumerate(selector)) == [first]
    current[0] = sandbox.path("two")
    assert list(enumerator.enumerate(selector)) == [second]


def test_pattern_matches_relative_path(sandbox: ConfigSandbox) -> None:
    sandbox.write("conf/a.json", {})
    sandbox.write("conf/sub/b.json", {})
    sandbox.write("conf/sub/skip.cue", {})
    sandbox.write("other/c.json", {})
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert sorted(_names(enumerator.enumerate(FileSelector.for_pattern("conf", r"\.json$")))) == ["a.json", "b.json"]
    assert sorted(_names(enumerator.enumerate(FileSelector.for_pattern("conf", r"^sub/")))) == ["b.json", "skip.cue"]


def test_pattern_with_quantifier(sandbox: ConfigSandbox) -> None:
    sandbox.write("conf/v10.json", {})
    sandbox.write("conf/v1.json", {})
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert _names(enumerator.enumerate(FileSelector.for_pattern("conf", r"^v\d{2}\.json$"))) == ["v10.json"]


def test_pattern_root_is_interpolated(sandbox: ConfigSandbox) -> None:
    sandbox.write("prod/app.json", {})
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={"STAGE": "prod"})
    selector = FileSelector.for_pattern("{getContextDir()}/{STAGE}", r"\.json$")
    assert _names(enumerator.enumerate(selector)) == ["app.json"]


def test_missing_pattern_root_yields_nothing(sandbox: ConfigSandbox) -> None:
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert list(enumerator.enumerate(FileSelector.for_pattern("nowhere", r"\.json$"))) == []


def test_ranking_depth_then_mtime_then_path(sandbox: ConfigSandbox) -> None:
    """Shallow before deep, old before new; equal mtimes put the earliest name last."""

    sandbox.write("conf/deep/old.json", {}, mtime=100)
    sandbox.write("conf/new.json", {}, mtime=900)
    sandbox.write("conf/old.json", {}, mtime=100)
    sandbox.write("conf/b.json", {}, mtime=500)
    sandbox.write("conf/a.json", {}, mtime=500)
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    selector = FileSelector.for_pattern("conf", r"\.json$")
    ordered = [path.relative_to(sandbox.path("conf")).as_posix() for path in enumerator.enumerate(selector)]
    assert ordered == ["old.json", "b.json", "a.json", "new.json", "deep/old.json"]
    reversed_order = [
        path.relative_to(sandbox.path("conf")).as_posix() for path in enumerator.enumerate(selector, reverse=True)
    ]
    assert reversed_order == list(reversed(ordered))


def test_rank_key_fields(sandbox: ConfigSandbox) -> None:
    path = sandbox.write("conf/a.json", {}, mtime=1234)
    depth, mtime, text = rank_key(path)
    assert depth == len(path.parent.parts)
    assert mtime == 1234
    assert text == str(path)


@pytest.mark.skipif(sys.platform.startswith("win"), reason="symlinks need privileges on Windows")
def test_symlinked_files_follow_flag(sandbox: ConfigSandbox, tmp_path: Path) -> None:
    outside = tmp_path / "shared" / "common.json"
    outside.parent.mkdir()
    outside.write_text("{}", encoding="utf-8")
    sandbox.path("conf").mkdir()
    os.symlink(outside, sandbox.path("conf/common.json"))
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})

    followed = list(enumerator.enumerate(FileSelector.for_pattern("conf", r"common\.json$")))
    assert followed == [Path(os.path.realpath(outside))]

    kept = list(enumerator.enumerate(FileSelector.for_pattern("conf", r"common\.json$", follow_links=False)))
    assert kept == [sandbox.path("conf/common.json")]


@pytest.mark.skipif(sys.platform.startswith("win"), reason="symlinks need privileges on Windows")
def test_symlinked_directories_are_not_walked(sandbox: ConfigSandbox, tmp_path: Path) -> None:
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    (elsewhere / "hidden.json").write_text("{}", encoding="utf-8")
    sandbox.path("conf").mkdir()
    os.symlink(elsewhere, sandbox.path("conf/linked"), target_is_directory=True)
    enumerator = DefaultSelectorEnumerator(sandbox.root, environ={})
    assert list(enumerator.enumerate(FileSelector.for_pattern("conf", r"\.json$"))) == []
