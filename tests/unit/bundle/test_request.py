"""Tests for BundleRequest construction and validation."""

from pathlib import Path

import pytest

from fuzzbundle.bundle.options import (
    DEFAULT_DOCKER_IMAGES,
    BundleOptions,
    build_request,
    default_output_path,
)
from fuzzbundle.bundle.request import AdditionalFile, BundleRequest, parse_additional_file
from fuzzbundle.config.build_system import BuildSystemKind
from fuzzbundle.config.project_config import ProjectConfig
from fuzzbundle.errors import ValidationError


def make_request(tmp_path, **overrides):
    values = dict(
        project_dir=tmp_path,
        build_system=BuildSystemKind.OTHER,
        fuzz_tests=("my_fuzz_test",),
        output_path=tmp_path / "out.tar.gz",
        build_command="make",
    )
    values.update(overrides)
    return BundleRequest(**values)


class TestParseAdditionalFile:
    """Test SOURCE;TARGET parsing."""

    def test_source_only(self, tmp_path):
        assert parse_additional_file("data/file.txt", tmp_path) == AdditionalFile(tmp_path / "data" / "file.txt", "file.txt")

    def test_source_and_target(self, tmp_path):
        entry = parse_additional_file("data/file.txt;etc/file.txt", tmp_path)
        assert entry.target == "etc/file.txt"

    def test_absolute_source(self, tmp_path):
        source = tmp_path / "file.txt"
        assert parse_additional_file(str(source), Path("/elsewhere")).source == source

    @pytest.mark.parametrize("entry", ["", ";target", "source;"])
    def test_invalid(self, tmp_path, entry):
        with pytest.raises(ValidationError):
            parse_additional_file(entry, tmp_path)


class TestValidate:
    """Test validation of bundle requests."""

    def test_valid(self, tmp_path):
        make_request(tmp_path).validate()

    def test_no_fuzz_tests(self, tmp_path):
        with pytest.raises(ValidationError):
            make_request(tmp_path, fuzz_tests=()).validate()

    def test_other_requires_build_command(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            make_request(tmp_path, build_command=None).validate()
        assert "--build-command" in str(exc_info.value)

    def test_build_command_ignored_for_cmake(self, tmp_path, caplog):
        make_request(tmp_path, build_system=BuildSystemKind.CMAKE).validate()
        assert "ignored" in caplog.text

    def test_negative_timeout(self, tmp_path):
        with pytest.raises(ValidationError):
            make_request(tmp_path, timeout=-1).validate()

    def test_zero_build_jobs(self, tmp_path):
        with pytest.raises(ValidationError):
            make_request(tmp_path, build_jobs=0).validate()

    def test_missing_seed_corpus(self, tmp_path):
        with pytest.raises(ValidationError):
            make_request(tmp_path, seed_corpus_dirs=(tmp_path / "missing",)).validate()

    def test_missing_dictionary(self, tmp_path):
        with pytest.raises(ValidationError):
            make_request(tmp_path, dictionary=tmp_path / "missing.dict").validate()

    def test_missing_additional_file(self, tmp_path):
        extra = AdditionalFile(tmp_path / "missing.txt", "missing.txt")
        with pytest.raises(ValidationError):
            make_request(tmp_path, additional_files=(extra,)).validate()

    @pytest.mark.parametrize("entry", ["=value", "1ABC=x", "A B=c"])
    def test_invalid_env(self, tmp_path, entry):
        with pytest.raises(ValidationError):
            make_request(tmp_path, env=(entry,)).validate()

    def test_valid_env(self, tmp_path):
        make_request(tmp_path, env=("ASAN_OPTIONS=detect_leaks=0", "HOME", "EMPTY=")).validate()

    def test_output_is_directory(self, tmp_path):
        with pytest.raises(ValidationError):
            make_request(tmp_path, output_path=tmp_path).validate()


class TestBuildRequest:
    """Test merging of options, configuration and defaults."""

    def test_default_output_path(self, tmp_path):
        assert default_output_path(["//src:parser_fuzz"], tmp_path) == tmp_path / "parser_fuzz.tar.gz"
        assert default_output_path(["com.example.Fuzz::fuzz"], tmp_path) == tmp_path / "com.example.Fuzz_fuzz.tar.gz"
        assert default_output_path(["a", "b"], tmp_path) == tmp_path / "fuzz_tests.tar.gz"

    def test_config_provides_defaults(self, tmp_path):
        (tmp_path / "corpus").mkdir()
        config = ProjectConfig(
            project_dir=tmp_path,
            build_command="make $FUZZ_TEST",
            seed_corpus_dirs=["corpus"],
            timeout=600,
            engine_args=["-max_len=64"],
        )
        request = build_request(
            BundleOptions(output_path=tmp_path / "out.tar.gz"), config, BuildSystemKind.OTHER, ["fuzz"]
        )

        assert request.build_command == "make $FUZZ_TEST"
        assert request.seed_corpus_dirs == (tmp_path / "corpus",)
        assert request.timeout == 600
        assert request.engine_args == ("-max_len=64",)
        assert request.docker_image == DEFAULT_DOCKER_IMAGES[BuildSystemKind.OTHER]
        assert request.fuzz_tests == ("fuzz",)

    def test_command_line_wins(self, tmp_path):
        config = ProjectConfig(project_dir=tmp_path, build_command="make", timeout=600, docker_image="ubuntu:22.04")
        options = BundleOptions(
            build_command="ninja",
            timeout=0,
            docker_image="debian:12",
            output_path=tmp_path / "out.tar.gz",
        )
        request = build_request(options, config, BuildSystemKind.OTHER, ["fuzz"])

        assert request.build_command == "ninja"
        assert request.timeout == 0
        assert request.docker_image == "debian:12"

    def test_jvm_default_image(self, tmp_path):
        request = build_request(
            BundleOptions(output_path=tmp_path / "out.tar.gz"),
            ProjectConfig(project_dir=tmp_path),
            BuildSystemKind.MAVEN,
            ["com.example.FuzzTest"],
        )
        assert request.docker_image == DEFAULT_DOCKER_IMAGES[BuildSystemKind.MAVEN]
        assert request.timeout == 0
