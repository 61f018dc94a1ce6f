#!/usr/bin/env python3
"""Pre-flight check — verifies deps import and the registry is writable before deploy.

Run from the server/ directory:
    python preflight_check.py
"""

import os
import sys
import tempfile
from pathlib import Path

ok = True


def check(label: str, code: str) -> bool:
    """Try an import."""
    global ok  # noqa: PLW0603

    try:
        exec(code)  # noqa: S102
        print(f"  ✓ {label}")
        return True
    except Exception as exc:
        print(f"  ✗ {label}: {exc}")
        ok = False
        return False


def check_registry_writable() -> bool:
    """The registry directory must accept a temp file and a rename."""
    global ok  # noqa: PLW0603

    from tars.config import get_settings

    registry = Path(get_settings().registry_path)
    directory = registry.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=directory, delete=False) as fh:
            fh.write(b"[]")
            scratch = Path(fh.name)
        renamed = scratch.with_suffix(".renamed")
        os.replace(scratch, renamed)
        renamed.unlink()
    except OSError as exc:
        print(f"  ✗ {directory}: {exc}")
        ok = False
        return False
    print(f"  ✓ {directory.resolve()} (atomic rename supported)")
    return True


print("Web stack:")
check("fastapi, starlette, uvicorn", "import fastapi, starlette, uvicorn")
check("pydantic, pydantic_settings", "import pydantic, pydantic_settings")
check("structlog, slowapi, prometheus_client", "import structlog, slowapi, prometheus_client")

print("App modules:")
check("ClientStore", "from tars.registry.client_store import ClientStore")
check("RequestGate", "from tars.gate import RequestGate")
check("create_app", "from tars.main import create_app")

print("Registry:")
if ok:
    check_registry_writable()

print()
if ok:
    print("All checks pass — safe to deploy.")
else:
    print("FAILED — fix the errors above before deploying.")
    sys.exit(1)
