import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--no-large",
        action="store_true",
        default=False,
        help="Skip round-trip tests over multi-buffer payloads.",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "large: round-trips multi-buffer payloads (use --no-large to skip)")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--no-large"):
        return
    skip_large = pytest.mark.skip(reason="--no-large option used")
    for item in items:
        if "large" in item.keywords:
            item.add_marker(skip_large)
