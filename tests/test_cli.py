"""Tests for the command-line entry point."""

import json

import pytest

from millcam.__main__ import main


@pytest.fixture
def program_file(tmp_path):
    path = tmp_path / "plate.json"
    path.write_text(json.dumps({
        "name": "plate",
        "operations": [{
            "type": "drill",
            "tool": {"number": 1, "diameter": 5},
            "depth": 10,
            "geometry": [[10, 10, 0], [20, 10, 0]],
        }],
    }))
    return path


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "puck.json"
    path.write_text(json.dumps([{"type": "cylinder", "id": "puck", "radius": 5, "height": 4}]))
    return path


class TestCli:
    def test_emit_then_parse(self, program_file, capsys):
        out = program_file.with_suffix(".nc")
        assert main(["emit", str(program_file)]) == 0
        assert out.exists()
        assert "G81" in out.read_text()
        capsys.readouterr()

        assert main(["parse", str(out), "--json"]) == 0
        records = json.loads(capsys.readouterr().out)
        assert [r["depth"] for r in records] == [10.0, 10.0]

    def test_mill_and_validate(self, model_file, tmp_path, capsys):
        out = tmp_path / "puck.nc"
        assert main(["mill", str(model_file), "-o", str(out), "--block-numbers"]) == 0
        text = out.read_text()
        assert "N0010" in text
        assert "G3" in text

        assert main(["validate", str(out), "--machine", "vmc-medium"]) == 0
        assert "Vertical machining center" in capsys.readouterr().out

    def test_missing_input_fails(self, tmp_path, capsys):
        assert main(["parse", str(tmp_path / "none.nc")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_validation_errors_fail(self, tmp_path):
        path = tmp_path / "wild.nc"
        path.write_text("G0 X5000 Y0\nM30\n")
        assert main(["validate", str(path), "--machine", "benchtop"]) == 1
