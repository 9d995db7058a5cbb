"""Shared fixtures: fake-binary directory and a runnable ``unitwizard`` command."""

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"

if SRC.is_dir() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(scope="session")
def uw_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """The venv's ``unitwizard`` script, or a bash wrapper running this checkout."""
    installed = REPO_ROOT / ".venv" / "bin" / "unitwizard"
    if installed.exists():
        return installed

    wrapper = tmp_path_factory.mktemp("uw-bin") / "unitwizard"
    wrapper.write_text(
        "#!/usr/bin/env bash\n"
        "set -Eeuo pipefail\n"
        f'export PYTHONPATH="{SRC}${{PYTHONPATH:+:$PYTHONPATH}}"\n'
        f'exec "{sys.executable}" -m unitwizard.cli "$@"\n',
        encoding="utf-8",
    )
    wrapper.chmod(0o755)
    return wrapper


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    """Where a test drops its fake ``kubectl`` and ``cub`` scripts."""
    path = tmp_path / "bin"
    path.mkdir()
    return path
