"""Tests for the default command line bundler."""

import shlex
import sys
import tarfile
from pathlib import Path

import pytest
import yaml

from fuzzbundle.build_log import setup_bundle_logging
from fuzzbundle.bundle.bundler import (
    BuildCommandBundler,
    Bundler,
    default_build_commands,
    resolve_env,
    run_command,
)
from fuzzbundle.bundle.outcome import ExecutionOutcome, OutcomeKind
from fuzzbundle.bundle.request import AdditionalFile, BundleRequest
from fuzzbundle.config.build_system import BuildSystemKind
from fuzzbundle.errors import ExecError, ExpectedBuildFailure

PYTHON = shlex.quote(sys.executable)

# Writes a file named after $FUZZ_TEST into out/
BUILD_SCRIPT = (
    f"{PYTHON} -c \"import os, pathlib; p = pathlib.Path('out'); p.mkdir(exist_ok=True); "
    "(p / os.environ['FUZZ_TEST']).write_text('binary'); (p / os.environ['FUZZ_TEST']).chmod(0o755); "
    "print('built', os.environ['FUZZ_TEST'])\""
)


@pytest.fixture
def destination(tmp_path):
    """Log destination writing build output to files."""
    with setup_bundle_logging(tmp_path, ["test"], log_build_to_file=True) as dest:
        yield dest


def make_request(tmp_path, **overrides):
    values = dict(
        project_dir=tmp_path,
        build_system=BuildSystemKind.OTHER,
        fuzz_tests=("my_fuzz_test",),
        output_path=tmp_path / "dist" / "my_fuzz_test.tar.gz",
        build_command=BUILD_SCRIPT,
    )
    values.update(overrides)
    return BundleRequest(**values)


class TestRunCommand:
    """Test running external commands."""

    def test_output_goes_to_destination(self, tmp_path, destination):
        run_command([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"], tmp_path, destination)
        destination.stdout.flush()
        text = destination.build_log_path.read_text()
        assert "out" in text
        assert "err" in text

    def test_failure(self, tmp_path, destination):
        with pytest.raises(ExecError) as exc_info:
            run_command([sys.executable, "-c", "raise SystemExit(3)"], tmp_path, destination)
        assert exc_info.value.returncode == 3
        assert isinstance(exc_info.value, ExpectedBuildFailure)

    def test_missing_executable(self, tmp_path, destination):
        with pytest.raises(ExpectedBuildFailure):
            run_command(["no-such-executable-fuzzbundle"], tmp_path, destination)


class TestResolveEnv:
    """Test environment entries."""

    def test_values_and_inherited(self):
        env = resolve_env(["A=1", "B", "C", "D=x=y"], environ={"B": "2"})
        assert env == {"A": "1", "B": "2", "D": "x=y"}


class TestDefaultBuildCommands:
    """Test the build tool invocations per build system."""

    def test_cmake(self, tmp_path):
        request = make_request(
            tmp_path,
            build_system=BuildSystemKind.CMAKE,
            fuzz_tests=("a", "b"),
            build_jobs=4,
            build_system_args=("-G", "Ninja"),
        )
        configure, build = default_build_commands(request)
        assert configure[:2] == ["cmake", "-S"]
        assert configure[-2:] == ["-G", "Ninja"]
        assert build[-4:] == ["a", "b", "--parallel", "4"]

    def test_bazel(self, tmp_path):
        request = make_request(tmp_path, build_system=BuildSystemKind.BAZEL, fuzz_tests=("//src:fuzz",))
        assert default_build_commands(request) == [["bazel", "build", "//src:fuzz"]]

    def test_maven_wrapper(self, tmp_path):
        (tmp_path / "mvnw").write_text("")
        request = make_request(tmp_path, build_system=BuildSystemKind.MAVEN)
        assert default_build_commands(request) == [[str(tmp_path / "mvnw"), "test-compile"]]

    def test_gradle(self, tmp_path):
        request = make_request(tmp_path, build_system=BuildSystemKind.GRADLE)
        assert default_build_commands(request) == [["gradle", "testClasses"]]


class TestBuildCommandBundler:
    """Test bundling with a custom build command."""

    def test_bundle_success(self, tmp_path, destination):
        corpus = tmp_path / "corpus"
        corpus.mkdir()
        (corpus / "seed1").write_text("seed")
        extra = tmp_path / "extra.txt"
        extra.write_text("extra")
        request = make_request(
            tmp_path,
            seed_corpus_dirs=(corpus,),
            additional_files=(AdditionalFile(extra, "data/extra.txt"),),
            env=("ASAN_OPTIONS=detect_leaks=0",),
            branch="main",
        )

        outcome = BuildCommandBundler().bundle(request, destination)

        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.archive_path == request.output_path
        with tarfile.open(outcome.archive_path) as archive:
            names = archive.getnames()
            manifest = yaml.safe_load(archive.extractfile("bundle.yaml"))
        assert "bin/my_fuzz_test" in names
        assert "seeds/0/seed1" in names
        assert "data/extra.txt" in names
        assert manifest["fuzz_tests"] == [{"name": "my_fuzz_test", "executable": "bin/my_fuzz_test"}]
        assert manifest["env"] == {"ASAN_OPTIONS": "detect_leaks=0"}
        assert manifest["branch"] == "main"

    def test_build_output_is_logged(self, tmp_path, destination):
        BuildCommandBundler().bundle(make_request(tmp_path), destination)
        destination.stdout.flush()
        assert "built my_fuzz_test" in destination.build_log_path.read_text()

    def test_clean_command_runs_once(self, tmp_path, destination):
        clean = f"{PYTHON} -c \"open('cleaned', 'a').write('x')\""
        request = make_request(tmp_path, fuzz_tests=("a", "b"), clean_command=clean)

        outcome = BuildCommandBundler().bundle(request, destination)

        assert outcome.ok
        assert (tmp_path / "cleaned").read_text() == "x"

    def test_failing_build_is_expected_failure(self, tmp_path, destination):
        request = make_request(tmp_path, build_command=f"{PYTHON} -c \"raise SystemExit(2)\"")

        outcome = BuildCommandBundler().bundle(request, destination)

        assert outcome.kind is OutcomeKind.EXPECTED_FAILURE
        assert isinstance(outcome.cause, ExecError)
        assert not request.output_path.exists()

    def test_missing_executable_is_expected_failure(self, tmp_path, destination):
        request = make_request(tmp_path, build_command=f"{PYTHON} -c \"pass\"")

        outcome = BuildCommandBundler().bundle(request, destination)

        assert outcome.kind is OutcomeKind.EXPECTED_FAILURE
        assert "did not produce" in str(outcome.cause)

    def test_data_file_with_executable_name_is_ignored(self, tmp_path):
        (tmp_path / "corpus").mkdir()
        (tmp_path / "corpus" / "my_fuzz_test").write_text("seed")
        out = tmp_path / "out"
        out.mkdir()
        (out / "my_fuzz_test").write_text("binary")
        (out / "my_fuzz_test").chmod(0o755)

        assert BuildCommandBundler.locate_executable("my_fuzz_test", tmp_path) == out / "my_fuzz_test"


class TestBundlerContract:
    """Test classification of bundler failures."""

    def test_internal_error_is_unexpected(self, tmp_path, destination):
        class BrokenBundler(Bundler):
            def create_bundle(self, request, destination):
                raise KeyError("boom")

        outcome = BrokenBundler().bundle(make_request(tmp_path), destination)

        assert outcome.kind is OutcomeKind.UNEXPECTED_FAILURE
        assert isinstance(outcome.cause, KeyError)

    def test_success(self, tmp_path, destination):
        class StaticBundler(Bundler):
            def create_bundle(self, request, destination):
                return Path(request.output_path)

        outcome = StaticBundler().bundle(make_request(tmp_path), destination)

        assert outcome.ok


class TestExecutionOutcome:
    """Test construction of bundler outcomes."""

    @pytest.mark.parametrize("kind", [OutcomeKind.EXPECTED_FAILURE, OutcomeKind.UNEXPECTED_FAILURE])
    def test_failure_requires_cause(self, kind):
        with pytest.raises(ValueError, match="requires a cause"):
            ExecutionOutcome(kind)

    def test_success_without_cause(self, tmp_path):
        outcome = ExecutionOutcome(OutcomeKind.SUCCESS, archive_path=tmp_path / "out.tar.gz")
        assert outcome.ok
        assert outcome.cause is None
