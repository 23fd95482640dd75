"""
Pytest configuration for fuzzbundle test suite.

This configuration enables the --full flag to run integration tests.
"""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--full",
        action="store_true",
        default=False,
        help="Run full test suite including integration tests (slow)",
    )


def pytest_configure(config):
    """Configure pytest based on command-line options."""
    config.addinivalue_line("markers", "integration: runs real build tools (enable with --full)")
    if config.getoption("--full"):
        # Remove the default marker expression that excludes integration tests
        markexpr = config.getoption("-m", "")
        if markexpr == "not integration":
            # Clear the marker expression to run all tests
            config.option.markexpr = ""


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --full is given."""
    if config.getoption("--full"):
        return
    skip_integration = pytest.mark.skip(reason="integration test, run with --full")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def reset_fuzzbundle_logging():
    """Drop console logging configured by a CLI test so it cannot leak into the next one."""
    yield
    import logging

    from fuzzbundle import cli

    if cli._console_handler is not None:
        package_logger = logging.getLogger("fuzzbundle")
        package_logger.removeHandler(cli._console_handler)
        package_logger.setLevel(logging.NOTSET)
        cli._console_handler = None
