"""Bundle assembly.

This module defines the contract between the bundle pipeline and the code
that builds fuzz tests and writes the archive, plus a default bundler that
drives the project's build tool on the command line.

Design:
    - Bundler.bundle() never raises for ordinary failures, it classifies
      them into an ExecutionOutcome
    - Build tool output is streamed into the LogDestination writers
    - The archive is a .tar.gz with a bundle.yaml manifest at its root
"""

import logging
import os
import shlex
import subprocess
import tarfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Dict, List, Mapping, Optional, Sequence, Union

import yaml

from ..build_log import LogDestination
from ..config.build_system import BuildSystemKind
from ..errors import ExecError, ExpectedBuildFailure
from ..resolve.executable import ExecutableResolver
from .outcome import ExecutionOutcome
from .request import BundleRequest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "bundle.yaml"
MANIFEST_VERSION = 1
CMAKE_BUILD_DIR = Path(".fuzzbundle") / "build"

Command = Union[str, List[str]]


class Bundler(ABC):
    """Builds the fuzz tests of a request and packs them into an archive."""

    def bundle(self, request: BundleRequest, destination: LogDestination) -> ExecutionOutcome:
        """
        Create the bundle and classify the result.

        Args:
            request: Validated bundle request
            destination: Writers for the output of build tools

        Returns:
            ExecutionOutcome with the archive path or the failure cause
        """
        try:
            archive_path = self.create_bundle(request, destination)
        except ExpectedBuildFailure as e:
            logger.debug(f"Bundling failed: {e}")
            return ExecutionOutcome.expected_failure(e)
        except Exception as e:
            logger.debug("Bundling failed with an internal error", exc_info=True)
            return ExecutionOutcome.unexpected_failure(e)
        return ExecutionOutcome.success(archive_path)

    @abstractmethod
    def create_bundle(self, request: BundleRequest, destination: LogDestination) -> Path:
        """
        Build the fuzz tests and write the archive.

        Returns:
            Path of the written archive

        Raises:
            ExpectedBuildFailure: For failures caused by the user's project
        """


def _pump(source: IO[str], sink, lock: threading.Lock) -> None:
    for line in iter(source.readline, ""):
        with lock:
            sink.write(line)
            sink.flush()
    source.close()


def run_command(
    command: Command,
    cwd: Path,
    destination: LogDestination,
    env: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Run an external command, streaming its output into the destination.

    A string is run through the shell, a list is executed directly.

    Raises:
        ExecError: If the command exits with a non-zero status
        ExpectedBuildFailure: If the executable does not exist
    """
    shell = isinstance(command, str)
    display = command if shell else shlex.join(command)
    logger.info(f"Running: {display}")

    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            shell=shell,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except FileNotFoundError as e:
        raise ExpectedBuildFailure(f"Command not found: {display} ({e})") from e

    lock = threading.Lock()
    pumps = [
        threading.Thread(target=_pump, args=(process.stdout, destination.stdout, lock), daemon=True),
        threading.Thread(target=_pump, args=(process.stderr, destination.stderr, lock), daemon=True),
    ]
    for pump in pumps:
        pump.start()
    returncode = process.wait()
    for pump in pumps:
        pump.join()

    if returncode != 0:
        raise ExecError(display, returncode)


def resolve_env(entries: Sequence[str], environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Turn NAME=VALUE / NAME entries into a mapping.

    A bare NAME takes its value from the current environment and is
    dropped if it is not set there.
    """
    environ = os.environ if environ is None else environ
    resolved: Dict[str, str] = {}
    for entry in entries:
        name, sep, value = entry.partition("=")
        if sep:
            resolved[name] = value
        elif name in environ:
            resolved[name] = environ[name]
        else:
            logger.warning(f"Environment variable {name} is not set and is not added to the bundle")
    return resolved


def _wrapper_or_tool(project_dir: Path, wrapper: str, tool: str) -> str:
    wrapper_path = project_dir / wrapper
    if wrapper_path.is_file():
        return str(wrapper_path)
    return tool


def default_build_commands(request: BundleRequest) -> List[List[str]]:
    """Commands building all fuzz tests of a request with the project's build tool."""
    kind = request.build_system
    args = list(request.build_system_args)
    jobs = request.build_jobs
    project_dir = Path(request.project_dir)

    if kind is BuildSystemKind.CMAKE:
        build_dir = str(CMAKE_BUILD_DIR)
        build = ["cmake", "--build", build_dir, "--target", *request.fuzz_tests]
        if jobs:
            build += ["--parallel", str(jobs)]
        return [["cmake", "-S", ".", "-B", build_dir, *args], build]
    if kind is BuildSystemKind.BAZEL:
        jobs_flag = [f"--jobs={jobs}"] if jobs else []
        return [["bazel", "build", *jobs_flag, *args, *request.fuzz_tests]]
    if kind is BuildSystemKind.MAVEN:
        return [[_wrapper_or_tool(project_dir, "mvnw", "mvn"), "test-compile", *args]]
    if kind is BuildSystemKind.GRADLE:
        return [[_wrapper_or_tool(project_dir, "gradlew", "gradle"), "testClasses", *args]]
    if kind is BuildSystemKind.NODEJS:
        return [["npm", "install", *args]]
    return []


class BuildCommandBundler(Bundler):
    """Default bundler driving the build on the command line.

    For build system "other" the configured build command is run once per
    fuzz test with FUZZ_TEST set to its name, and the resulting executables
    are added to the archive. For all other build systems the build tool is
    invoked with its default command and the manifest records the fuzz
    tests to run.
    """

    def create_bundle(self, request: BundleRequest, destination: LogDestination) -> Path:
        project_dir = Path(request.project_dir)
        build_env = dict(os.environ)

        if request.clean_command:
            run_command(request.clean_command, project_dir, destination, build_env)

        executables: Dict[str, Path] = {}
        if request.build_system is BuildSystemKind.OTHER:
            for fuzz_test in request.fuzz_tests:
                env = {**build_env, "FUZZ_TEST": fuzz_test}
                if request.build_jobs:
                    env["FUZZ_BUILD_JOBS"] = str(request.build_jobs)
                run_command(request.build_command, project_dir, destination, env)
                executables[fuzz_test] = self.locate_executable(fuzz_test, project_dir)
        else:
            for command in default_build_commands(request):
                run_command(command, project_dir, destination, build_env)

        return self.write_archive(request, executables)

    @staticmethod
    def locate_executable(fuzz_test: str, project_dir: Path) -> Path:
        """
        Find the executable of a fuzz test after it was built.

        Raises:
            ExpectedBuildFailure: If no or more than one candidate exists
        """
        path = Path(fuzz_test)
        candidate = path if path.is_absolute() else project_dir / path
        if candidate.is_file():
            return candidate

        matches = ExecutableResolver.find_executables(path.name, project_dir)
        if not matches:
            raise ExpectedBuildFailure(
                f"The build command did not produce an executable for fuzz test '{fuzz_test}'"
            )
        if len(matches) > 1:
            listing = ", ".join(matches)
            raise ExpectedBuildFailure(
                f"Found more than one executable for fuzz test '{fuzz_test}': {listing}"
            )
        return project_dir / matches[0]

    def manifest(self, request: BundleRequest, executables: Mapping[str, Path]) -> dict:
        fuzz_tests = []
        for fuzz_test in request.fuzz_tests:
            entry = {"name": fuzz_test}
            if fuzz_test in executables:
                entry["executable"] = f"bin/{executables[fuzz_test].name}"
            fuzz_tests.append(entry)

        manifest = {
            "version": MANIFEST_VERSION,
            "build_system": request.build_system.value,
            "docker_image": request.docker_image,
            "fuzz_tests": fuzz_tests,
            "seed_corpus_dirs": [f"seeds/{i}" for i in range(len(request.seed_corpus_dirs))],
            "engine_args": list(request.engine_args),
            "timeout": request.timeout,
            "env": resolve_env(request.env),
        }
        if request.dictionary is not None:
            manifest["dictionary"] = f"dict/{Path(request.dictionary).name}"
        if request.branch:
            manifest["branch"] = request.branch
        if request.commit:
            manifest["commit"] = request.commit
        return manifest

    def write_archive(self, request: BundleRequest, executables: Mapping[str, Path]) -> Path:
        """Write the .tar.gz archive of a request."""
        output_path = Path(request.output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        manifest_path = Path(request.project_dir) / ".fuzzbundle" / MANIFEST_NAME
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        manifest_path.write_text(
            yaml.safe_dump(self.manifest(request, executables), sort_keys=False),
            encoding="utf-8",
        )

        logger.info(f"Writing bundle {output_path}")
        with tarfile.open(output_path, "w:gz") as archive:
            archive.add(manifest_path, arcname=MANIFEST_NAME)
            for executable in executables.values():
                archive.add(executable, arcname=f"bin/{executable.name}")
            for i, seed_dir in enumerate(request.seed_corpus_dirs):
                archive.add(seed_dir, arcname=f"seeds/{i}")
            if request.dictionary is not None:
                archive.add(request.dictionary, arcname=f"dict/{Path(request.dictionary).name}")
            for extra in request.additional_files:
                archive.add(extra.source, arcname=extra.target)
        return output_path
