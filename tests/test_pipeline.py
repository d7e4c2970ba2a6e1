"""Tests for mpublish.pipeline."""

from __future__ import annotations

import json
import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mpublish.errors import (
    CycleError,
    ExternalStepError,
    NothingToDo,
    ReleaseCancelled,
    UnknownTargetWarning,
)
from mpublish.models import BumpDirectives, PackageManifest, PublishAction
from mpublish.pipeline import (
    bump_versions,
    execute_plan,
    plan_release,
    run_release,
)


def _ok(*args: str, cwd: str | None = None) -> subprocess.CompletedProcess[bytes]:
    return subprocess.CompletedProcess(args, 0)


class TestBumpVersions:
    def test_bumps_members(self, chain_manifests: dict[str, PackageManifest]) -> None:
        bumps, malformed = bump_versions(chain_manifests, ["a", "c"], BumpDirectives())

        assert {n: (b.old, b.new) for n, b in bumps.items()} == {
            "a": ("1.0.0", "1.0.1"),
            "c": ("0.4.9-beta", "0.4.10-beta"),
        }
        assert malformed == {}
        assert chain_manifests["a"].version == "1.0.1"
        assert chain_manifests["b"].version == "2.1.3"

    def test_collects_malformed(
        self, chain_manifests: dict[str, PackageManifest]
    ) -> None:
        chain_manifests["b"].version = "2.1"
        bumps, malformed = bump_versions(chain_manifests, ["b"], BumpDirectives())

        assert bumps == {}
        assert "malformed version '2.1'" in malformed["b"]
        assert chain_manifests["b"].version == "2.1"

    def test_skips_unknown(self, chain_manifests: dict[str, PackageManifest]) -> None:
        bumps, malformed = bump_versions(chain_manifests, ["ghost"], BumpDirectives())
        assert bumps == {} and malformed == {}


class TestPlanRelease:
    def test_no_targets(self, chain_manifests: dict[str, PackageManifest]) -> None:
        with pytest.raises(NothingToDo):
            plan_release(chain_manifests, [], BumpDirectives())

    def test_write_mode(self, chain_manifests: dict[str, PackageManifest]) -> None:
        plan = plan_release(chain_manifests, ["a"], BumpDirectives())

        assert plan.order == ["a", "b", "c"]
        assert plan.versions == {"a": "1.0.1", "b": "2.1.4", "c": "0.4.10-beta"}
        assert chain_manifests["b"].dependencies == {"a": "1.0.1", "lodash": "^4.0.0"}
        assert chain_manifests["c"].dependencies == {"b": "2.1.4"}
        # d is not a dependent of a
        assert chain_manifests["d"].version == "3.0.0"
        assert [s.action for s in plan.steps] == [PublishAction.PUBLISH] * 3

    def test_all_with_directives(
        self, diamond_manifests: dict[str, PackageManifest]
    ) -> None:
        plan = plan_release(
            diamond_manifests, ["all"], BumpDirectives(minor="3", tag="rc")
        )

        assert set(plan.versions.values()) == {"1.3.0-rc"}
        assert plan.order[0] == "bottom"
        assert plan.order[-1] == "top"
        assert diamond_manifests["top"].dependencies == {
            "left": "1.3.0-rc",
            "right": "1.3.0-rc",
        }

    def test_listing_mode(self, chain_manifests: dict[str, PackageManifest]) -> None:
        plan = plan_release(chain_manifests, ["c"], BumpDirectives(), write=False)

        assert plan.order == ["a", "d", "b", "c"]
        assert plan.versions == {
            "a": "1.0.0",
            "b": "2.1.3",
            "c": "0.4.9-beta",
            "d": "3.0.0",
        }
        assert plan.bumps == {}
        assert chain_manifests["c"].dependencies == {"b": "^2.1.3"}

    def test_dry_run_skips(self, chain_manifests: dict[str, PackageManifest]) -> None:
        plan = plan_release(chain_manifests, ["b"], BumpDirectives(), dry_run=True)

        assert [(s.name, s.action) for s in plan.steps] == [
            ("b", PublishAction.SKIP),
            ("c", PublishAction.SKIP),
        ]
        assert plan.versions["b"] == "2.1.4"

    def test_malformed_excluded(
        self, chain_manifests: dict[str, PackageManifest]
    ) -> None:
        chain_manifests["b"].version = "2.1.y"
        plan = plan_release(chain_manifests, ["a"], BumpDirectives())

        assert plan.order == ["a", "c"]
        assert "b" not in plan.versions
        assert list(plan.malformed) == ["b"]
        # b still depends on a and gets no write-back, c keeps its pin on b
        assert chain_manifests["c"].dependencies == {"b": "^2.1.3"}

    def test_unknown_target_warns(
        self, chain_manifests: dict[str, PackageManifest]
    ) -> None:
        with pytest.warns(UnknownTargetWarning, match="ghost"):
            plan = plan_release(chain_manifests, ["ghost", "c"], BumpDirectives())

        assert plan.unknown_targets == ["ghost"]
        assert plan.order == ["c"]

    def test_cycle_raises(self) -> None:
        manifests = {
            "a": PackageManifest(name="a", version="1.0.0", dependencies={"b": "1"}),
            "b": PackageManifest(name="b", version="1.0.0", dependencies={"a": "1"}),
        }
        with pytest.raises(CycleError) as exc_info:
            plan_release(manifests, ["a"], BumpDirectives())
        assert exc_info.value.packages == ["a", "b"]


class TestExecutePlan:
    @pytest.fixture
    def plan_and_manifests(self, chain_manifests: dict[str, PackageManifest]):
        plan = plan_release(chain_manifests, ["a"], BumpDirectives())
        return plan, chain_manifests

    def test_runs_in_order(self, plan_and_manifests) -> None:
        plan, manifests = plan_and_manifests
        runner = MagicMock(side_effect=_ok)

        published = execute_plan(plan, manifests, runner=runner)

        assert published == ["a", "b", "c"]
        calls = [(c.args, c.kwargs["cwd"]) for c in runner.call_args_list]
        assert calls == [
            (("npm", "install"), "packages/a"),
            (("npm", "publish"), "packages/a"),
            (("npm", "install"), "packages/b"),
            (("npm", "publish"), "packages/b"),
            (("npm", "install"), "packages/c"),
            (("npm", "publish"), "packages/c"),
        ]

    def test_dry_run_runs_nothing(
        self, chain_manifests: dict[str, PackageManifest]
    ) -> None:
        plan = plan_release(chain_manifests, ["a"], BumpDirectives(), dry_run=True)
        runner = MagicMock(side_effect=_ok)

        assert execute_plan(plan, chain_manifests, runner=runner) == []
        runner.assert_not_called()

    def test_failure_aborts(self, plan_and_manifests) -> None:
        plan, manifests = plan_and_manifests

        def runner(*args: str, cwd: str | None = None):
            code = 1 if (cwd, args[-1]) == ("packages/b", "publish") else 0
            return subprocess.CompletedProcess(args, code)

        mock = MagicMock(side_effect=runner)
        with pytest.raises(ExternalStepError) as exc_info:
            execute_plan(plan, manifests, runner=mock)

        assert exc_info.value.package == "b"
        assert exc_info.value.command == ["npm", "publish"]
        assert exc_info.value.returncode == 1
        assert exc_info.value.published == ["a"]
        # c is never attempted
        assert mock.call_count == 4

    def test_missing_executable_aborts(self, plan_and_manifests) -> None:
        plan, manifests = plan_and_manifests

        def runner(*args: str, cwd: str | None = None):
            if cwd == "packages/b":
                raise FileNotFoundError(2, "No such file or directory", args[0])
            return _ok(*args)

        with pytest.raises(ExternalStepError) as exc_info:
            execute_plan(plan, manifests, runner=runner)

        assert exc_info.value.package == "b"
        assert exc_info.value.command == ["npm", "install"]
        assert exc_info.value.returncode == -1
        assert exc_info.value.published == ["a"]
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_cancel_stops_before_next_package(self, plan_and_manifests) -> None:
        plan, manifests = plan_and_manifests
        cancel = threading.Event()

        def runner(*args: str, cwd: str | None = None):
            if args[-1] == "publish":
                cancel.set()
            return _ok(*args)

        with pytest.raises(ReleaseCancelled) as exc_info:
            execute_plan(plan, manifests, runner=runner, cancel=cancel)

        assert exc_info.value.published == ["a"]

    @patch("builtins.print")
    def test_verbose_echoes_commands(
        self, mock_print: MagicMock, plan_and_manifests
    ) -> None:
        plan, manifests = plan_and_manifests
        execute_plan(plan, manifests, runner=_ok, verbose=True)

        printed = [c.args[0] for c in mock_print.call_args_list]
        assert "    packages/a$ npm install" in printed


class TestRunRelease:
    @patch("mpublish.pipeline.run", side_effect=_ok)
    def test_writes_and_publishes(
        self, mock_run: MagicMock, npm_workspace: Path
    ) -> None:
        plan = run_release(npm_workspace, ["core"], BumpDirectives())

        assert plan.order == ["core", "lib", "app"]
        assert plan.versions == {
            "core": "1.0.1",
            "lib": "1.2.4-beta",
            "app": "0.1.1",
        }
        lib = json.loads((npm_workspace / "lib" / "package.json").read_text())
        assert lib["version"] == "1.2.4-beta"
        assert lib["dependencies"] == {"core": "1.0.1", "left-pad": "^1.3.0"}
        app = json.loads((npm_workspace / "app" / "package.json").read_text())
        assert app["dependencies"] == {"lib": "1.2.4-beta"}
        assert mock_run.call_count == 6
        assert mock_run.call_args_list[0].kwargs["cwd"] == str(npm_workspace / "core")

    @patch("mpublish.pipeline.run", side_effect=_ok)
    def test_dry_run_writes_but_does_not_publish(
        self, mock_run: MagicMock, npm_workspace: Path
    ) -> None:
        run_release(npm_workspace, ["app"], BumpDirectives(), dry_run=True)

        app = json.loads((npm_workspace / "app" / "package.json").read_text())
        assert app["version"] == "0.1.1"
        mock_run.assert_not_called()

    @patch("mpublish.pipeline.run", side_effect=_ok)
    def test_dry_run_without_write_touches_nothing(
        self, mock_run: MagicMock, npm_workspace: Path
    ) -> None:
        before = (npm_workspace / "app" / "package.json").read_text()

        plan = run_release(
            npm_workspace, ["app"], BumpDirectives(), write=False, dry_run=True
        )

        assert plan.versions == {"app": "0.1.1"}
        assert (npm_workspace / "app" / "package.json").read_text() == before
        mock_run.assert_not_called()

    @patch("mpublish.pipeline.run", side_effect=_ok)
    def test_no_write_publishes_everything_as_is(
        self, mock_run: MagicMock, npm_workspace: Path
    ) -> None:
        plan = run_release(npm_workspace, ["app"], BumpDirectives(), write=False)

        assert plan.order == ["core", "lib", "app"]
        assert plan.versions["lib"] == "1.2.3-beta"
        assert mock_run.call_count == 6

    @patch("mpublish.pipeline.warn")
    @patch("mpublish.pipeline.run", side_effect=_ok)
    def test_reports_unknown_target(
        self, mock_run: MagicMock, mock_warn: MagicMock, npm_workspace: Path
    ) -> None:
        plan = run_release(npm_workspace, ["ghost"], BumpDirectives())

        assert plan.order == []
        assert "ghost" in mock_warn.call_args_list[0].args[0]
        mock_run.assert_not_called()

    @patch("mpublish.pipeline.warn")
    @patch("mpublish.pipeline.run", side_effect=_ok)
    def test_warns_on_non_semver_for_npm(
        self, mock_run: MagicMock, mock_warn: MagicMock, npm_workspace: Path
    ) -> None:
        run_release(npm_workspace, ["app"], BumpDirectives(tag="beta..1"))

        assert "not a valid semver" in mock_warn.call_args_list[0].args[0]
