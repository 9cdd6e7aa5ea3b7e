import json

from cli import main
from services.provenance_service import verify_provenance


def test_commit_then_verify(tmp_path, capsys):
    out = tmp_path / "provenance.json"
    assert main(["commit", "--slots", "12", "--out", str(out)]) == 0

    doc = json.loads(out.read_text())
    assert sorted(doc["indices"]) == list(range(12))
    assert verify_provenance(doc["indices"], doc["salt"], doc["provenance_hash"])
    assert doc["provenance_hash"] in capsys.readouterr().out

    assert main(["verify", "--file", str(out)]) == 0


def test_verify_known_vector(capsys):
    code = main([
        "verify",
        "--indices", "3,2,1,0",
        "--salt", "0xa7571219",
        "--hash", "0x74431f12a115a6bdf6762a0a2a382f2fafe67665e085a49dd4d32af49c76853b",
    ])
    assert code == 0
    assert "VERIFIED" in capsys.readouterr().out


def test_verify_mismatch(capsys):
    code = main([
        "verify",
        "--indices", "0,1,2,3",
        "--salt", "0xa7571219",
        "--hash", "0x74431f12a115a6bdf6762a0a2a382f2fafe67665e085a49dd4d32af49c76853b",
    ])
    assert code == 1
    assert "MISMATCH" in capsys.readouterr().out


def test_verify_rejects_malformed_salt(capsys):
    code = main([
        "verify",
        "--indices", "0,1",
        "--salt", "0xabc",
        "--hash", "0x" + "1" * 64,
    ])
    assert code == 1
    assert "INVALID INPUT" in capsys.readouterr().out


def test_verify_rejects_non_numeric_indices(capsys):
    code = main([
        "verify",
        "--indices", "0,x",
        "--salt", "0xa7571219",
        "--hash", "0x" + "1" * 64,
    ])
    assert code == 1
    assert "INVALID INPUT" in capsys.readouterr().out
