import logging
import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import revreg`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from revreg.config import ConfigManager  # noqa: E402
from revreg.registry import RevocationRegistry  # noqa: E402


OWNER = "0x" + "a1" * 20
PUBLISHER = "0x" + "b0" * 20
STRANGER = "0x" + "c4" * 20


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless REVREG_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('REVREG_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set REVREG_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Fresh config singleton and no REVREG_* overrides leaking in from the shell."""
    for name in list(os.environ):
        if name.startswith("REVREG_") and name != "REVREG_RUN_SLOW":
            monkeypatch.delenv(name, raising=False)
    ConfigManager.reset_instance()
    yield
    ConfigManager.reset_instance()
    root = logging.getLogger("revreg")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


@pytest.fixture
def owner() -> str:
    return OWNER


@pytest.fixture
def publisher() -> str:
    return PUBLISHER


@pytest.fixture
def stranger() -> str:
    return STRANGER


@pytest.fixture
def registry() -> RevocationRegistry:
    """Registry owned by OWNER with PUBLISHER delegated and the event log drained."""
    reg = RevocationRegistry(OWNER)
    reg.add_publisher(OWNER, PUBLISHER)
    reg.events.drain()
    return reg
