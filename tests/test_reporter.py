"""Tests for JSON and console reporters."""

import json
from pathlib import Path

from capguard.models.capabilities import Confidence, Finding
from capguard.models.report import AuditReport, AuditResult, AuditStatus, FileAudit, ProjectAudit
from capguard.reporter import console_out
from capguard.reporter.json_out import to_canonical_json, write_report


def _report(status_findings=()):
    result = AuditResult(violations=tuple(status_findings))
    return AuditReport(
        target="/tmp/pkg",
        audit_timestamp="2026-01-01T00:00:00+00:00",
        declared=["fs"],
        audit=ProjectAudit(
            files=(FileAudit(path="index.js", findings=tuple(status_findings), result=result),),
            result=result,
        ),
    )


def _violation():
    return Finding(
        capability="net",
        confidence=Confidence.DIRECT,
        node_kind="CallExpression",
        line=3,
        col=0,
        pattern="net",
        message="Loads restricted module 'net' via require()",
        file="index.js",
        source_line="require('net')",
    )


class TestCanonicalJson:
    def test_sorted_keys_and_trailing_newline(self):
        text = to_canonical_json({"b": 1, "a": [1, 2]})
        assert text == '{\n  "a": [\n    1,\n    2\n  ],\n  "b": 1\n}\n'

    def test_model_dump(self):
        data = json.loads(to_canonical_json(_report([_violation()])))
        assert data["audit"]["status"] == "fail"
        assert data["audit"]["result"]["violations"][0]["confidence"] == "direct"

    def test_deterministic(self):
        report = _report([_violation()])
        assert to_canonical_json(report) == to_canonical_json(report)

    def test_write_report(self, tmp_path: Path):
        out = tmp_path / "nested" / "capguard_report.json"
        write_report(_report(), out)
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["audit"]["status"] == AuditStatus.PASS.value
        assert b"\r\n" not in out.read_bytes()


class TestConsoleOutput:
    def test_pass_report(self, capsys):
        console_out.print_audit_report(_report())
        out = capsys.readouterr().out
        assert "PASS" in out

    def test_fail_report_lists_violation(self, capsys):
        console_out.print_audit_report(_report([_violation()]))
        out = capsys.readouterr().out
        assert "FAIL" in out
        assert "net (1)" in out

    def test_error_goes_to_stderr(self, capsys):
        console_out.print_error("boom")
        captured = capsys.readouterr()
        assert "boom" in captured.err
        assert "boom" not in captured.out

    def test_source_text_printed_literally(self, capsys):
        finding = _violation().model_copy(
            update={"source_line": "window[key]; require('net') // [/bold]", "message": "Loads [red]net"}
        )
        console_out.print_audit_report(_report([finding]))
        out = capsys.readouterr().out
        assert "[/bold]" in out
        assert "[red]net" in out

    def test_error_message_printed_literally(self, capsys):
        console_out.print_error("bad [/] value")
        assert "bad [/] value" in capsys.readouterr().err
