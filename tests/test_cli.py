"""
CLI tests.

Uses subprocess to invoke the CLI and verify exit codes and output.
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest


def run_meld(*args, bin_path=None, cwd=None, expect_fail=False):
    """Run a meld CLI command and return (returncode, stdout, stderr)."""
    cmd = [sys.executable, "-X", "utf8", "-m", "meld.cli"]
    if bin_path is not None:
        cmd += ["--bin", str(bin_path)]
    cmd += list(args)
    env = {**os.environ, "PYTHONPATH": str(Path(__file__).parent.parent)}
    env.pop("MELD_BIN", None)
    result = subprocess.run(cmd, capture_output=True, text=True, cwd=cwd, env=env)
    if not expect_fail and result.returncode != 0:
        print(f"STDOUT: {result.stdout}")
        print(f"STDERR: {result.stderr}")
    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def bin_path(tmp_path):
    path = tmp_path / "bin"
    rc, _, err = run_meld("init", bin_path=path)
    assert rc == 0, f"Init failed: {err}"
    return path


class TestInit:
    def test_init_twice_fails(self, bin_path):
        rc, _, err = run_meld("init", bin_path=bin_path, expect_fail=True)
        assert rc == 1
        assert "already exists" in err

    def test_init_force(self, bin_path):
        rc, _, _ = run_meld("init", "--force", bin_path=bin_path)
        assert rc == 0

    def test_init_parents(self, tmp_path):
        rc, _, _ = run_meld("init", bin_path=tmp_path / "x" / "bin", expect_fail=True)
        assert rc == 1
        rc, _, _ = run_meld("init", "--parents", bin_path=tmp_path / "x" / "bin")
        assert rc == 0

    def test_bin_from_environment(self, tmp_path):
        env = {
            **os.environ,
            "PYTHONPATH": str(Path(__file__).parent.parent),
            "MELD_BIN": str(tmp_path / "envbin"),
        }
        result = subprocess.run(
            [sys.executable, "-m", "meld.cli", "init"],
            capture_output=True, text=True, env=env,
        )
        assert result.returncode == 0
        assert (tmp_path / "envbin" / "meld.db").exists()

    def test_no_bin_given(self):
        rc, _, err = run_meld("status", expect_fail=True)
        assert rc == 1
        assert "MELD_BIN" in err


class TestPushPull:
    def test_round_trip(self, bin_path, tmp_path):
        f = tmp_path / "app.conf"
        f.write_text("C1")
        rc, out, _ = run_meld("--json", "push", str(f), bin_path=bin_path)
        assert rc == 0
        assert json.loads(out)["version"] == 1

        f.write_text("C2")
        rc, out, _ = run_meld("--json", "push", str(f), "--tag", "two", bin_path=bin_path)
        data = json.loads(out)
        assert (data["version"], data["update"]) == (2, "content")

        rc, _, _ = run_meld("pull", str(f), "--version", "1", bin_path=bin_path)
        assert rc == 0
        assert f.read_text() == "C1"

        rc, _, _ = run_meld("pull", str(f), "--tag", "two", bin_path=bin_path)
        assert f.read_text() == "C2"

    def test_missing_tag_exit_code(self, bin_path, tmp_path):
        f = tmp_path / "app.conf"
        f.write_text("C1")
        run_meld("push", str(f), bin_path=bin_path)

        rc, _, err = run_meld("pull", str(f), "--tag", "nope", bin_path=bin_path,
                              expect_fail=True)
        assert rc == 1
        assert "Tag not found" in err

        rc, _, _ = run_meld("pull", str(f), "--tag", "nope", "--recent", bin_path=bin_path)
        assert rc == 0

    def test_push_directory(self, bin_path, tmp_path):
        d = tmp_path / "etc"
        d.mkdir()
        (d / "a.conf").write_text("a")
        rc, out, _ = run_meld("--json", "push", str(d), bin_path=bin_path)
        assert rc == 0
        data = json.loads(out)
        assert data["version"] == 1
        assert data["snapshot_created"] is True

        rc, out, _ = run_meld("push", str(d), bin_path=bin_path)
        assert "no new map version" in out


class TestHistoryStatus:
    def test_history(self, bin_path, tmp_path):
        f = tmp_path / "app.conf"
        for content, tag in (("1", ""), ("2", "stable")):
            f.write_text(content)
            run_meld("push", str(f), "--tag", tag, bin_path=bin_path)

        rc, out, _ = run_meld("--json", "history", str(f), bin_path=bin_path)
        assert rc == 0
        data = json.loads(out)
        assert [v["ver"] for v in data["versions"]] == [1, 2]
        assert data["versions"][1]["tag"] == "stable"

    def test_history_unknown_path(self, bin_path, tmp_path):
        rc, _, err = run_meld("history", str(tmp_path / "x"), bin_path=bin_path,
                              expect_fail=True)
        assert rc == 1
        assert "not been pushed" in err

    def test_status(self, bin_path, tmp_path):
        rc, out, _ = run_meld("--json", "status", bin_path=bin_path)
        assert rc == 0
        assert json.loads(out)["rows"] == {"configs": 0, "versions": 0, "maps": 0}

    def test_status_not_a_bin(self, tmp_path):
        rc, out, _ = run_meld("--json", "status", bin_path=tmp_path / "nope",
                              expect_fail=True)
        assert rc == 1
        assert "error" in json.loads(out)
