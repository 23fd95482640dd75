"""
Command-line interface for fuzzbundle.

This module provides the `fuzzbundle` CLI tool for bundling fuzz tests.
"""

import argparse
import getpass
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from fuzzbundle import __version__
from fuzzbundle.auth import (
    APIClient,
    TokenStorage,
    check_and_store_token,
    default_server,
    get_auth_status,
)
from fuzzbundle.bundle import BuildCommandBundler, BundleOptions, BundlePipeline
from fuzzbundle.cli_utils import ErrorFormatter, PathValidator, split_passthrough_args
from fuzzbundle.config import CONFIG_FILE_NAME, BuildSystemKind, classify, create_project_config
from fuzzbundle.config.build_system import determine_gradle_build_language, is_gradle_multi_project
from fuzzbundle.errors import APIError, FuzzBundleError, SilentError

BUNDLE_DESCRIPTION = """\
Bundles all runtime artifacts required by the given fuzz tests into a
self-contained archive (bundle) that can be executed in a separate
environment. Seed corpus directories given with --seed-corpus are added
to the bundle.

CMake
  <fuzz test> is the name of a fuzz test defined with add_fuzz_test in
  your CMakeLists.txt. The --build-command flag is ignored. Additional
  CMake arguments can be passed after "--". If no fuzz tests are
  specified, all fuzz tests are added to the bundle.

Bazel
  <fuzz test> is the name of a cc_fuzz_test target, either as a relative
  or absolute Bazel label. The --build-command flag is ignored. Additional
  Bazel arguments can be passed after "--".

Maven/Gradle
  <fuzz test> is the name of the class containing the fuzz test. The
  --build-command flag is ignored. If no fuzz tests are specified, all
  fuzz tests are added to the bundle.

Other build systems
  <fuzz test> is either the path or the basename of the fuzz test
  executable created by the build command. A basename is searched for
  recursively in the project directory. A build command is required; the
  fuzz test is available to it in the FUZZ_TEST environment variable:

    echo "build-command: make clean && make \\$FUZZ_TEST" >> fuzzbundle.yaml
    fuzzbundle bundle my_fuzz_test

  A clean command given with --clean-command runs once before the fuzz
  tests are built.
"""

INSTRUCTIONS = {
    BuildSystemKind.CMAKE: (
        "Declare your fuzz tests with add_fuzz_test(<name> <sources>...) in CMakeLists.txt."
    ),
    BuildSystemKind.BAZEL: (
        "Declare your fuzz tests as cc_fuzz_test targets in your BUILD files."
    ),
    BuildSystemKind.MAVEN: (
        "Add Jazzer to the test dependencies in pom.xml and annotate fuzz test methods with @FuzzTest."
    ),
    BuildSystemKind.GRADLE: (
        "Add Jazzer to the test dependencies in {build_file} and annotate fuzz test methods with @FuzzTest."
    ),
    BuildSystemKind.NODEJS: (
        "Add Jazzer.js to your devDependencies and name your fuzz tests *.fuzz.js or *.fuzz.ts."
    ),
    BuildSystemKind.OTHER: (
        f"Set build-command in {CONFIG_FILE_NAME} to a command building the fuzz test named by $FUZZ_TEST."
    ),
}

GRADLE_MULTI_PROJECT_WARNING = (
    "For multi-project builds, you should set up fuzzbundle in the subprojects containing the fuzz tests."
)

_console_handler: Optional[logging.Handler] = None


@dataclass
class InitArgs:
    """Arguments for the init command."""

    directory: Path
    verbose: bool = False


@dataclass
class AuthArgs:
    """Arguments for the auth command."""

    action: str
    server: str
    verbose: bool = False


def configure_logging(verbose: bool) -> None:
    """Show warnings on stderr, or everything in verbose mode."""
    global _console_handler
    package_logger = logging.getLogger("fuzzbundle")
    if _console_handler is not None:
        package_logger.removeHandler(_console_handler)

    level = logging.DEBUG if verbose else logging.WARNING
    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(level)
    _console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    package_logger.addHandler(_console_handler)
    package_logger.setLevel(level)


def bundle_command(options: BundleOptions) -> None:
    """Bundle fuzz tests into an archive.

    Examples:
        fuzzbundle bundle                          # Bundle all fuzz tests
        fuzzbundle bundle my_fuzz_test             # Bundle one fuzz test
        fuzzbundle bundle -o out.tar.gz a b        # Custom archive path
        fuzzbundle bundle my_fuzz_test -- -G Ninja # Pass arguments to CMake
    """
    try:
        pipeline = BundlePipeline(options, bundler=BuildCommandBundler())
        pipeline.run()
    except SilentError:
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, options.verbose)

    sys.exit(0)


def init_command(args: InitArgs) -> None:
    """Set up a project for use with fuzzbundle by creating fuzzbundle.yaml."""
    try:
        kind = classify(args.directory, command="init")
    except FuzzBundleError as e:
        ErrorFormatter.print_error("Failed to determine build system", str(e))
        sys.exit(1)

    instructions = INSTRUCTIONS[kind]
    if kind is BuildSystemKind.GRADLE:
        build_file = "build.gradle.kts" if determine_gradle_build_language(args.directory) == "kotlin" else "build.gradle"
        instructions = instructions.format(build_file=build_file)
        if is_gradle_multi_project(args.directory):
            ErrorFormatter.print_warning(GRADLE_MULTI_PROJECT_WARNING)

    try:
        config_path = create_project_config(args.directory)
    except FileExistsError:
        ErrorFormatter.print_warning(f"Config already exists in {args.directory / CONFIG_FILE_NAME}")
        sys.exit(1)
    except OSError as e:
        ErrorFormatter.print_error("Failed to create config", str(e))
        sys.exit(1)

    ErrorFormatter.print_success(f"Configuration saved in {config_path}")
    print()
    print(f"Detected build system: {kind.display_name}")
    print(instructions)
    sys.exit(0)


def auth_command(args: AuthArgs) -> None:
    """Show or set up authentication with a fuzzbundle server."""
    storage = TokenStorage()
    client = APIClient(args.server)
    try:
        if args.action == "status":
            if get_auth_status(args.server, storage=storage, client=client):
                ErrorFormatter.print_success(f"Authenticated with {args.server}")
            else:
                print(f"Not authenticated with {args.server}. Use 'fuzzbundle auth login' to authenticate.")
                sys.exit(1)
        else:
            token = getpass.getpass(f"Enter an API access token for {args.server}: ")
            check_and_store_token(args.server, token, storage=storage, client=client)
            ErrorFormatter.print_success(f"Successfully authenticated with {args.server}")
    except APIError as e:
        ErrorFormatter.print_error("Authentication failed", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()

    sys.exit(0)


def _add_verbose(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def add_bundle_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the options of the bundle command."""
    parser.add_argument(
        "fuzz_tests",
        nargs="*",
        metavar="fuzz test",
        help="Fuzz tests to bundle (default: all fuzz tests, where supported)",
    )
    parser.add_argument("-o", "--output", type=Path, default=None, help="Output path of the bundle (.tar.gz)")
    parser.add_argument("--project-dir", type=Path, default=None, help="Project directory (default: directory containing fuzzbundle.yaml)")
    parser.add_argument("--build-command", default=None, help="Command to build the fuzz test (build system 'other')")
    parser.add_argument("--clean-command", default=None, help="Command executed once before building the fuzz tests")
    parser.add_argument("-j", "--build-jobs", type=int, default=None, help="Maximum number of concurrent build jobs")
    parser.add_argument("--docker-image", default=None, help="Docker image used to run the bundle")
    parser.add_argument("--env", action="append", default=[], metavar="NAME[=VALUE]", help="Environment variable for the fuzz tests (repeatable)")
    parser.add_argument("-s", "--seed-corpus", action="append", default=[], dest="seed_corpus_dirs", metavar="DIR", help="Directory with seed inputs (repeatable)")
    parser.add_argument("--dict", default=None, dest="dictionary", help="Dictionary file for the fuzzing engine")
    parser.add_argument("--engine-arg", action="append", default=[], dest="engine_args", help="Argument for the fuzzing engine (repeatable)")
    parser.add_argument("--add", action="append", default=[], dest="additional_files", metavar="SOURCE[;TARGET]", help="Additional file added to the bundle (repeatable)")
    parser.add_argument("--timeout", type=int, default=None, help="Maximum time in seconds to run each fuzz test")
    parser.add_argument("--resolve", action="store_true", dest="resolve_source_files", help="Treat the arguments as source files and bundle the fuzz tests they define")
    parser.add_argument("--branch", default=None, help="Branch name recorded in the bundle")
    parser.add_argument("--commit", default=None, help="Commit recorded in the bundle")
    _add_verbose(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fuzzbundle",
        description="fuzzbundle - Bundle fuzz tests into self-contained archives",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fuzzbundle {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Bundle command
    bundle_parser = subparsers.add_parser(
        "bundle",
        help="Bundle fuzz tests into an archive",
        description=BUNDLE_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        usage="fuzzbundle bundle [flags] [<fuzz test>...] [-- <build system args>...]",
    )
    add_bundle_arguments(bundle_parser)

    # Init command
    init_parser = subparsers.add_parser(
        "init",
        help="Set up a project for use with fuzzbundle",
    )
    init_parser.add_argument(
        "--dir",
        type=Path,
        default=None,
        dest="directory",
        help="Project directory (default: current directory)",
    )
    _add_verbose(init_parser)

    # Auth command
    auth_parser = subparsers.add_parser(
        "auth",
        help="Authenticate with a fuzzbundle server",
    )
    auth_parser.add_argument("action", choices=["status", "login"], help="Show status or store a new token")
    auth_parser.add_argument("--server", default=None, help="Server URL (default: $FUZZBUNDLE_SERVER)")
    _add_verbose(auth_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """fuzzbundle - Bundle fuzz tests into self-contained archives."""
    if argv is None:
        argv = sys.argv[1:]
    argv, passthrough = split_passthrough_args(argv)

    parser = build_parser()
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if passthrough and parsed_args.command != "bundle":
        parser.error("arguments after -- are only supported by the bundle command")

    configure_logging(parsed_args.verbose)

    if parsed_args.command == "bundle":
        if parsed_args.project_dir is not None:
            PathValidator.validate_project_dir(parsed_args.project_dir)
        options = BundleOptions(
            fuzz_test_args=parsed_args.fuzz_tests,
            build_system_args=passthrough,
            project_dir=parsed_args.project_dir,
            output_path=parsed_args.output,
            build_command=parsed_args.build_command,
            clean_command=parsed_args.clean_command,
            docker_image=parsed_args.docker_image,
            env=parsed_args.env,
            seed_corpus_dirs=parsed_args.seed_corpus_dirs,
            dictionary=parsed_args.dictionary,
            engine_args=parsed_args.engine_args,
            additional_files=parsed_args.additional_files,
            timeout=parsed_args.timeout,
            build_jobs=parsed_args.build_jobs,
            resolve_source_files=parsed_args.resolve_source_files,
            branch=parsed_args.branch,
            commit=parsed_args.commit,
            verbose=parsed_args.verbose,
        )
        bundle_command(options)
    elif parsed_args.command == "init":
        directory = parsed_args.directory or Path.cwd()
        PathValidator.validate_project_dir(directory)
        init_command(InitArgs(directory=directory, verbose=parsed_args.verbose))
    elif parsed_args.command == "auth":
        auth_command(
            AuthArgs(
                action=parsed_args.action,
                server=parsed_args.server or default_server(),
                verbose=parsed_args.verbose,
            )
        )


if __name__ == "__main__":
    main()
