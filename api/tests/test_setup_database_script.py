from __future__ import annotations

import hashlib
import subprocess
import sys
from pathlib import Path


SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "setup_database.py"


def _run_script(*args: str) -> str:
    completed = subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def test_print_emits_schema_and_category_seed() -> None:
    output = _run_script("--print")

    assert "create table if not exists skills" in output
    assert "on skills (lower(name))" in output
    assert "constraint applications_candidate_job_key unique (candidate_id, job_id)" in output
    assert "('Software Development')" in output
    assert "on conflict (name) do nothing;" in output


def test_hash_key_matches_api_verification() -> None:
    output = _run_script("--hash-key", "local-maintenance-key")

    assert output.strip() == hashlib.sha256(b"local-maintenance-key").hexdigest()
