"""
Unit tests for the local EnvVault command line.
"""

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from envvault.core.exceptions import DECRYPT_FAILURE_MESSAGE
from envvault.core.hashing import hash_key_name
from envvault.core.models import b64encode
from envvault.frontend.cli import app
from envvault.frontend.cli.bundle import load_bundle
from envvault.frontend.cli.context import build_context
from envvault.security import cipher
from envvault.security.envelope import decrypt_to_mapping, latest_versions
from envvault.security.kdf import derive_master_key

PASSWORD = "correct horse battery staple"


def _ctx(password=PASSWORD):
    return build_context(env={"ENVVAULT_MASTER_PASSWORD": password})


def run_cli(*argv, password=PASSWORD):
    return app.main(list(argv), ctx=_ctx(password))


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def envfile(tmp_path):
    path = tmp_path / ".env"
    path.write_text('DATABASE_URL="postgres://u:p@h/db"\n# comment\nAPI_KEY=sk-123\nEMPTY=\n')
    return path


@pytest.fixture
def bundle_path(tmp_path, envfile):
    path = tmp_path / "envvault.json"
    assert run_cli("seal", str(envfile), "-b", str(path)) == 0
    return path


# ==============================================================================
# Tests: seal / open
# ==============================================================================

def test_seal_creates_bundle(capsys, bundle_path):
    bundle = load_bundle(bundle_path)
    assert bundle.iterations == 100_000
    assert len(bundle.records) == 3
    assert "3 added" in capsys.readouterr().out
    assert "sk-123" not in bundle_path.read_text()


def test_open_to_stdout(bundle_path, capsys):
    capsys.readouterr()
    assert run_cli("open", str(bundle_path)) == 0
    assert capsys.readouterr().out == 'DATABASE_URL=postgres://u:p@h/db\nAPI_KEY=sk-123\nEMPTY=\n'


def test_open_to_file_respects_force(bundle_path, tmp_path):
    out = tmp_path / "out.env"
    out.write_text("OLD=1\n")
    assert run_cli("open", str(bundle_path), "-o", str(out)) == 1
    assert out.read_text() == "OLD=1\n"
    assert run_cli("open", str(bundle_path), "-o", str(out), "--force") == 0
    assert "API_KEY=sk-123" in out.read_text()


def test_reseal_updates_changed_values(bundle_path, envfile, capsys):
    envfile.write_text("DATABASE_URL=postgres://u:p@h/db\nAPI_KEY=sk-456\nNEW=yes\n")
    capsys.readouterr()
    assert run_cli("seal", str(envfile), "-b", str(bundle_path)) == 0
    assert "1 added, 1 updated, 1 unchanged" in capsys.readouterr().out

    bundle = load_bundle(bundle_path)
    versions = {r.version for r in bundle.records if r.key_hash == hash_key_name("API_KEY")}
    assert versions == {1, 2}

    key = derive_master_key(PASSWORD, bundle.salt, bundle.iterations)
    assert decrypt_to_mapping(key, latest_versions(bundle.records)) == {
        "DATABASE_URL": "postgres://u:p@h/db",
        "API_KEY": "sk-456",
        "EMPTY": "",
        "NEW": "yes",
    }


def test_reseal_migrates_legacy_records(bundle_path, envfile):
    bundle = load_bundle(bundle_path)
    key = derive_master_key(PASSWORD, bundle.salt, bundle.iterations)
    # a record in the old one-nonce shape
    nonce = cipher.generate_nonce()
    data = json.loads(bundle_path.read_text())
    data["secrets"].append(
        {
            "keyHash": hash_key_name("LEGACY"),
            "keyEncrypted": b64encode(cipher.encrypt(key, nonce, b"LEGACY")),
            "valueEncrypted": b64encode(cipher.encrypt(key, nonce, b"old")),
            "nonce": b64encode(nonce),
            "version": 1,
        }
    )
    bundle_path.write_text(json.dumps(data))

    assert run_cli("seal", str(envfile), "-b", str(bundle_path)) == 0
    migrated = [r for r in load_bundle(bundle_path).records if r.key_hash == hash_key_name("LEGACY")]
    assert [r.version for r in migrated] == [1, 2]
    assert migrated[0].is_legacy and not migrated[1].is_legacy


def test_wrong_password_prints_friendly_message(bundle_path, capsys):
    capsys.readouterr()
    assert run_cli("open", str(bundle_path), password="wrong password") == 1
    captured = capsys.readouterr()
    assert captured.err.strip() == DECRYPT_FAILURE_MESSAGE
    assert "Traceback" not in captured.err
    assert captured.out == ""


def test_missing_file_is_an_error(tmp_path, capsys):
    assert run_cli("open", str(tmp_path / "missing.json")) == 1
    assert capsys.readouterr().err.startswith("error:")


def test_session_is_locked_after_command(bundle_path):
    ctx = _ctx()
    assert app.main(["open", str(bundle_path)], ctx=ctx) == 0
    assert not ctx.session.is_unlocked


# ==============================================================================
# Tests: run / diff
# ==============================================================================

def test_run_injects_secrets(bundle_path):
    with patch("envvault.frontend.cli.app.subprocess.run") as mock_run:
        mock_run.return_value = SimpleNamespace(returncode=7)
        assert run_cli("run", str(bundle_path), "--", "printenv", "API_KEY") == 7

    command, = mock_run.call_args[0]
    assert command == ["printenv", "API_KEY"]
    env = mock_run.call_args[1]["env"]
    assert env["API_KEY"] == "sk-123"
    assert env["DATABASE_URL"] == "postgres://u:p@h/db"


def test_run_without_command(bundle_path, capsys):
    assert run_cli("run", str(bundle_path)) == 2


def test_diff(tmp_path, bundle_path, capsys):
    other_env = tmp_path / "other.env"
    other_env.write_text("DATABASE_URL=postgres://u:p@h/db\nAPI_KEY=sk-999\nEXTRA=1\n")
    other = tmp_path / "other.json"
    assert run_cli("seal", str(other_env), "-b", str(other)) == 0
    capsys.readouterr()

    assert run_cli("diff", str(bundle_path), str(other)) == 0
    out = capsys.readouterr().out
    assert "+ 1 added  - 1 removed  ~ 1 changed  = 1 same" in out
    assert "sk-999" not in out


# ==============================================================================
# Tests: share / receive
# ==============================================================================

def test_share_and_receive(tmp_path, bundle_path, capsys):
    payload = tmp_path / "payload.json"
    capsys.readouterr()
    assert run_cli("share", str(bundle_path), "API_KEY", "--out", str(payload), "--base-url", "https://x.test") == 0
    link = capsys.readouterr().out.strip()
    assert link.startswith("https://x.test/receive/")

    share_id, fragment = link.rsplit("/", 1)[1].split("#")
    data = json.loads(payload.read_text())
    assert data["shareId"] == share_id
    assert fragment not in payload.read_text()

    assert run_cli("receive", str(payload), link) == 0
    assert capsys.readouterr().out == "API_KEY=sk-123\n"

    assert run_cli("receive", str(payload), fragment) == 0
    capsys.readouterr()

    bad = ("0" if fragment[0] != "0" else "1") + fragment[1:]
    assert run_cli("receive", str(payload), bad) == 1
    assert capsys.readouterr().err.strip() == DECRYPT_FAILURE_MESSAGE

    assert run_cli("receive", str(payload), link, "--consumed") == 1
    assert "already been viewed" in capsys.readouterr().err


def test_share_unknown_key(bundle_path, capsys):
    assert run_cli("share", str(bundle_path), "NOPE") == 1
    assert "not found" in capsys.readouterr().err


def test_share_copy_to_clipboard(tmp_path, bundle_path, capsys):
    with patch("envvault.frontend.cli.app.copy_to_clipboard", return_value=True) as mock_copy:
        assert run_cli("share", str(bundle_path), "API_KEY", "--out", str(tmp_path / "p.json"), "--copy") == 0
    link = capsys.readouterr().out.strip().splitlines()[-1]
    mock_copy.assert_called_once_with(link)


def test_receive_rejects_link_for_other_payload(tmp_path, bundle_path, capsys):
    payload = tmp_path / "payload.json"
    assert run_cli("share", str(bundle_path), "API_KEY", "--out", str(payload)) == 0
    capsys.readouterr()
    link = "https://envvault.dev/receive/" + "ff" * 16 + "#" + "00" * 32
    assert run_cli("receive", str(payload), link) == 1
    assert "does not belong" in capsys.readouterr().err
