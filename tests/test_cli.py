"""
Tests for the stateform CLI
"""
import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from stateform import __version__
from stateform.cli.main import app, main
from stateform.core.exceptions import StateStoreError


class TestCLI:
    """End-to-end tests through the typer app with the local provider"""

    @pytest.fixture(autouse=True)
    def setup(self, clean_environment, temp_dir, scenario, monkeypatch):
        monkeypatch.chdir(temp_dir)
        self.runner = CliRunner()
        self.root = Path(temp_dir)
        self.document = self._write("infra.yaml", scenario)
        self.paths = ["--state-path", str(self.root / "state"), "--workspace", str(self.root / "cloud")]

    def _write(self, name, document):
        path = self.root / name
        path.write_text(yaml.safe_dump(document))
        return path

    def _invoke(self, *args, **kwargs):
        return self.runner.invoke(app, [str(arg) for arg in args], **kwargs)

    def test_version(self):
        result = self._invoke("--version")

        assert result.exit_code == 0
        assert f"stateform version {__version__}" in result.output

    def test_validate(self):
        result = self._invoke("validate", self.document)

        assert result.exit_code == 0
        assert "4 resources in 3 ranks" in result.output

    def test_validate_cycle(self):
        doc = {
            "resources": {
                "a": {"kind": "ecr_repository", "attributes": {"name": "a", "tags": {"p": "${b.arn}"}}},
                "b": {"kind": "ecr_repository", "attributes": {"name": "b", "tags": {"p": "${a.arn}"}}},
            }
        }
        result = self._invoke("validate", self._write("cycle.yaml", doc))

        assert result.exit_code == 1
        assert "cycle" in result.output

    def test_plan_with_changes_exits_2(self):
        result = self._invoke("plan", self.document, *self.paths)

        assert result.exit_code == 2
        assert "4 to create" in result.output

    def test_plan_build_error_exits_1(self):
        doc = {"resources": {"a": {"kind": "ecr_repository", "attributes": {"name": "${ghost.arn}"}}}}

        result = self._invoke("plan", self._write("bad.yaml", doc), *self.paths)

        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_plan_missing_document(self):
        result = self._invoke("plan", self.root / "missing.yaml", *self.paths)

        assert result.exit_code == 1

    def test_apply_then_plan_is_clean(self):
        applied = self._invoke("apply", self.document, "--concurrency", 2, *self.paths)
        assert applied.exit_code == 0, applied.output
        assert "Apply complete" in applied.output

        planned = self._invoke("plan", self.document, *self.paths)
        assert planned.exit_code == 0
        assert "No changes" in planned.output

        again = self._invoke("apply", self.document, *self.paths)
        assert again.exit_code == 0
        assert "No changes" in again.output

    def test_apply_partial_failure_exits_1(self):
        """Two repositories with the same name: the second create fails"""
        doc = {
            "resources": {
                "first": {"kind": "ecr_repository", "attributes": {"name": "shared"}},
                "second": {"kind": "ecr_repository", "attributes": {"name": "shared"}},
            }
        }

        result = self._invoke("apply", self._write("dup.yaml", doc), "-n", 1, *self.paths)

        assert result.exit_code == 1
        assert "1 failed" in result.output

    def test_state_written_to_state_path(self):
        self._invoke("apply", self.document, *self.paths)

        files = sorted(p.name for p in (self.root / "state").glob("*.json"))
        assert files == ["ecr_repo.json", "security_group.json", "service.json", "task_def.json"]

    def test_show(self):
        self._invoke("apply", self.document, *self.paths)

        listing = self._invoke("show", "--state-path", self.root / "state")
        assert listing.exit_code == 0
        assert "ecr_repo" in listing.output

        detail = self._invoke("show", "ecr_repo", "--state-path", self.root / "state")
        assert detail.exit_code == 0
        assert json.loads(detail.output)["kind"] == "ecr_repository"

    def test_show_missing_resource(self):
        result = self._invoke("show", "nope", "--state-path", self.root / "state")

        assert result.exit_code == 1

    def test_graph_json(self):
        result = self._invoke("graph", self.document, "--json")

        assert result.exit_code == 0
        assert json.loads(result.output)["service"]["rank"] == 2

    def test_graph_table(self):
        result = self._invoke("graph", self.document)

        assert result.exit_code == 0
        assert "task_def" in result.output

    def test_destroy(self):
        self._invoke("apply", self.document, *self.paths)

        result = self._invoke("destroy", "--yes", *self.paths)
        assert result.exit_code == 0

        listing = self._invoke("show", "--state-path", self.root / "state")
        assert "State is empty" in listing.output

    def test_destroy_declined(self):
        self._invoke("apply", self.document, *self.paths)

        result = self._invoke("destroy", *self.paths, input="n\n")

        assert result.exit_code == 1
        assert len(list((self.root / "state").glob("*.json"))) == 4

    def test_destroy_nothing(self):
        result = self._invoke("destroy", "--yes", *self.paths)

        assert result.exit_code == 0
        assert "Nothing to destroy" in result.output

    def test_config_file_option(self):
        config_path = self.root / "stateform-ci.toml"
        config_path.write_text(f'[state]\nstate_path = "{(self.root / "ci-state").as_posix()}"\n')

        result = self._invoke("--config", config_path, "apply", self.document,
                              "--workspace", self.root / "cloud")

        assert result.exit_code == 0, result.output
        assert (self.root / "ci-state" / "service.json").exists()

    def test_invalid_config_file(self):
        result = self._invoke("--config", self.root / "absent.toml", "validate", self.document)

        assert result.exit_code == 1


class TestMain:
    """Tests for the console entry point"""

    def test_keyboard_interrupt(self, mocker):
        mocker.patch("stateform.cli.main.app", side_effect=KeyboardInterrupt)

        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 130

    def test_unhandled_stateform_error(self, mocker, monkeypatch):
        monkeypatch.delenv("STATEFORM_LOG_LEVEL", raising=False)
        mocker.patch("stateform.cli.main.app", side_effect=StateStoreError("disk full"))

        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

    def test_debug_reraises(self, mocker, monkeypatch):
        monkeypatch.setenv("STATEFORM_LOG_LEVEL", "DEBUG")
        mocker.patch("stateform.cli.main.app", side_effect=StateStoreError("disk full"))

        with pytest.raises(StateStoreError):
            main()
