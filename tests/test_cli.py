"""
Tests for the savreader command line.
"""

import json

import pytest
import yaml

from savreader.cli import main

from test_parser import survey_file


@pytest.fixture
def sav_path(tmp_path):
    path = tmp_path / "survey.sav"
    path.write_bytes(survey_file())
    return path


def test_all_as_json(sav_path, capsys):
    assert main([str(sav_path)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["rows"][0]["CITY"] == "LONDON"
    assert out["schema"]["meta"]["cases"] == 2


def test_meta_as_yaml(sav_path, capsys):
    assert main([str(sav_path), "--part", "meta", "--format", "yaml"]) == 0
    out = yaml.safe_load(capsys.readouterr().out)
    assert out["compression"] == 1


def test_fields(sav_path, capsys):
    assert main([str(sav_path), "--part", "fields"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert [x["name"] for x in out] == ["AGE", "CITY", "EMP"]


def test_report(sav_path, capsys):
    assert main([str(sav_path), "--report"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["fields"] == 3
    assert out["warnings"] == []


def test_trace_to_stderr(sav_path, capsys):
    assert main([str(sav_path), "--part", "schema", "--trace"]) == 0
    assert "Reading Internal" in capsys.readouterr().err


def test_invalid_file(tmp_path, capsys):
    path = tmp_path / "bad.sav"
    path.write_bytes(b"NOPE" + b"\x00" * 200)
    assert main([str(path)]) == 1
    assert "Magic key" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.sav")]) == 1


def test_bad_option(sav_path):
    with pytest.raises(SystemExit) as excinfo:
        main([str(sav_path), "--part", "everything"])
    assert excinfo.value.code == 2
