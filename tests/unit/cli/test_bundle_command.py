"""Tests for the 'fuzzbundle bundle' command."""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from fuzzbundle.bundle import ExecutionOutcome
from fuzzbundle.cli import main
from fuzzbundle.errors import ExecError


class TestCLIBundle:
    """Tests for the 'fuzzbundle bundle' command."""

    @pytest.fixture
    def project_dir(self, tmp_path, monkeypatch):
        """Create a project using a custom build command."""
        (tmp_path / "fuzzbundle.yaml").write_text("build-system: other\nbuild-command: make $FUZZ_TEST\n")
        monkeypatch.setenv("FUZZBUNDLE_ALLOW_UNSUPPORTED_PLATFORMS", "1")
        monkeypatch.delenv("FUZZBUNDLE_PRINT_BUILD_LOGS", raising=False)
        return tmp_path

    @pytest.fixture
    def mock_bundler(self):
        """Replace the default bundler."""
        with patch("fuzzbundle.cli.BuildCommandBundler") as mock_bundler_class:
            mock_instance = MagicMock()
            mock_instance.bundle.side_effect = lambda request, destination: ExecutionOutcome.success(request.output_path)
            mock_bundler_class.return_value = mock_instance
            yield mock_instance

    def bundled_request(self, mock_bundler):
        mock_bundler.bundle.assert_called_once()
        return mock_bundler.bundle.call_args.args[0]

    def test_bundle_success(self, mock_bundler, project_dir, monkeypatch, capsys):
        """Test successful bundle."""
        output = project_dir / "out.tar.gz"
        monkeypatch.setattr(
            sys, "argv", ["fuzzbundle", "bundle", "--project-dir", str(project_dir), "-o", str(output), "my_fuzz_test"]
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert f"Successfully created bundle: {output}" in capsys.readouterr().out
        request = self.bundled_request(mock_bundler)
        assert request.fuzz_tests == ("my_fuzz_test",)
        assert request.output_path == output

    def test_bundle_flags(self, mock_bundler, project_dir, monkeypatch):
        """Test that flags end up in the request."""
        corpus = project_dir / "corpus"
        corpus.mkdir()
        monkeypatch.chdir(project_dir)
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "fuzzbundle", "bundle", "--project-dir", str(project_dir),
                "--build-command", "ninja $FUZZ_TEST",
                "--clean-command", "ninja clean",
                "-j", "8",
                "--timeout", "300",
                "--docker-image", "debian:12",
                "--env", "FOO=bar",
                "-s", str(corpus),
                "--engine-arg", "-max_len=64",
                "--branch", "main",
                "--commit", "abc123",
                "a", "b",
            ],
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        request = self.bundled_request(mock_bundler)
        assert request.fuzz_tests == ("a", "b")
        assert request.build_command == "ninja $FUZZ_TEST"
        assert request.clean_command == "ninja clean"
        assert request.build_jobs == 8
        assert request.timeout == 300
        assert request.docker_image == "debian:12"
        assert request.env == ("FOO=bar",)
        assert request.seed_corpus_dirs == (corpus,)
        assert request.engine_args == ("-max_len=64",)
        assert request.branch == "main"
        assert request.commit == "abc123"
        assert request.output_path == project_dir / "fuzz_tests.tar.gz"

    def test_passthrough_arguments(self, mock_bundler, project_dir, monkeypatch):
        """Test that arguments after -- are passed to the build system."""
        monkeypatch.setattr(
            sys,
            "argv",
            ["fuzzbundle", "bundle", "--project-dir", str(project_dir), "my_fuzz_test", "--", "-DFOO=1", "--trace"],
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        request = self.bundled_request(mock_bundler)
        assert request.build_system_args == ("-DFOO=1", "--trace")

    def test_bundle_failure(self, mock_bundler, project_dir, monkeypatch, capsys):
        """Test that a failing build exits with 1 and points to the log."""
        mock_bundler.bundle.side_effect = None
        mock_bundler.bundle.return_value = ExecutionOutcome.expected_failure(ExecError("make my_fuzz_test", 2))
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "bundle", "--project-dir", str(project_dir), "my_fuzz_test"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "Details of the build can be found in the log file" in out
        assert "exited with status 2" in out

    def test_unexpected_error(self, mock_bundler, project_dir, monkeypatch, capsys):
        """Test that internal errors are reported as unexpected."""
        mock_bundler.bundle.side_effect = None
        mock_bundler.bundle.return_value = ExecutionOutcome.unexpected_failure(RuntimeError("internal"))
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "bundle", "--project-dir", str(project_dir), "my_fuzz_test"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "Unexpected error" in out
        assert "RuntimeError: internal" in out

    def test_keyboard_interrupt(self, mock_bundler, project_dir, monkeypatch):
        """Test Ctrl-C during the build."""
        mock_bundler.bundle.side_effect = KeyboardInterrupt()
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "bundle", "--project-dir", str(project_dir), "my_fuzz_test"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 130

    def test_missing_build_command(self, mock_bundler, tmp_path, monkeypatch, capsys):
        """Test that build system 'other' requires a build command."""
        (tmp_path / "fuzzbundle.yaml").write_text("build-system: other\n")
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "bundle", "--project-dir", str(tmp_path), "my_fuzz_test"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "build command is required" in capsys.readouterr().out
        mock_bundler.bundle.assert_not_called()

    def test_invalid_project_dir(self, tmp_path, monkeypatch):
        """Test that a missing project directory exits with 2."""
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "bundle", "--project-dir", str(tmp_path / "missing")])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 2

    def test_project_dir_from_config_search(self, mock_bundler, project_dir, monkeypatch):
        """Test that the project directory is found from the current directory."""
        nested = project_dir / "src" / "deep"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "bundle", "my_fuzz_test"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert Path(self.bundled_request(mock_bundler).project_dir) == project_dir.resolve()


class TestCLIMain:
    """Tests for the top-level parser."""

    def test_no_command_shows_help(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["fuzzbundle"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert "bundle" in capsys.readouterr().out

    def test_version(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "--version"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert "fuzzbundle" in capsys.readouterr().out

    def test_passthrough_only_for_bundle(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["fuzzbundle", "init", "--dir", str(tmp_path), "--", "x"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 2
        assert not (tmp_path / "fuzzbundle.yaml").exists()
