"""Discover the k6 test scripts available to run."""

import logging
from collections.abc import Sequence
from pathlib import Path

log = logging.getLogger(__name__)

TESTS_SUBDIR = "tests"


def list_tests(tests_dir: Path) -> Sequence[str]:
    """List runnable test names (script names without the ``.js`` suffix).

    Args:
        tests_dir: Directory containing the ``tests/`` folder

    Returns:
        Test names sorted alphabetically, empty if the folder is missing.

    """
    scripts_dir = tests_dir / TESTS_SUBDIR
    if not scripts_dir.is_dir():
        log.warning("Tests directory not found: %s", scripts_dir)
        return []

    return sorted(path.stem for path in scripts_dir.glob("*.js") if path.is_file())


def has_test_script(tests_dir: Path, name: str) -> bool:
    """Check if a test script exists for ``name``."""
    if not name or "/" in name or name.startswith("."):
        return False
    return (tests_dir / TESTS_SUBDIR / f"{name}.js").is_file()
