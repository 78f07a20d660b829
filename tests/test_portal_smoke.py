from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

import pytest
from dotenv import dotenv_values

ROOT = Path(__file__).resolve().parents[1]


def _get_env_file() -> Optional[Path]:
    env_path = os.getenv("PORTAL_ENV_FILE")
    if env_path:
        return Path(env_path)

    default = ROOT / ".env"
    if default.exists():
        return default

    return None


def _skip_or_fail(reason: str) -> None:
    # Portal smoke tests log into the real site and should not fail local unit test runs by default.
    # To force failures locally (e.g., in a dedicated integration run), set REQUIRE_PORTAL_TESTS=1.
    if os.getenv("REQUIRE_PORTAL_TESTS") == "1":
        pytest.fail(reason)
    pytest.skip(reason)


def _run_check(backend: str) -> None:
    env_file = _get_env_file()
    env = os.environ.copy()
    if env_file is not None and env_file.exists():
        for key, value in dotenv_values(env_file).items():
            if value is None or key in env:
                continue
            env[key] = value
    elif env_file is not None:
        _skip_or_fail(f"Env file not found: {env_file}")

    if not env.get("TCNO") or not env.get("PASSWORD"):
        _skip_or_fail("Missing TCNO/PASSWORD for the portal smoke test.")

    cmd = [sys.executable, "-m", "spor_istanbul_slots"]
    if env_file:
        cmd += ["--env-file", str(env_file)]
    cmd += ["check", "--backend", backend, "--bundle"]

    timeout = int(os.getenv("PORTAL_SMOKE_TIMEOUT", "300"))
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT / "src"), env.get("PYTHONPATH", "")]))
    subprocess.run(cmd, cwd=ROOT, env=env, check=True, timeout=timeout)


@pytest.mark.portal
def test_check_with_playwright() -> None:
    _run_check("playwright")


@pytest.mark.portal
def test_check_with_selenium() -> None:
    _run_check("selenium")
