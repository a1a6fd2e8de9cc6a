"""
Unit tests for the ratelimit-policy command.
"""

import json

import pytest
from structlog.testing import capture_logs

from service_ratelimit.app.loader import load_from_file
from service_ratelimit.app.main import main, parse_attributes


class TestParseAttributes:
    """Test cases for key=value parsing."""

    def test_pairs(self):
        """Test values may contain '=' and be empty."""
        assert parse_attributes(["method=GET", "query=a=b", "empty="]) == {
            "method": "GET",
            "query": "a=b",
            "empty": "",
        }

    @pytest.mark.parametrize("pair", ["method", "=GET"])
    def test_invalid_pairs(self, pair):
        """Test malformed pairs are rejected."""
        with pytest.raises(Exception, match="key=value"):
            parse_attributes([pair])


class TestValidateCommand:
    """Test cases for `ratelimit-policy validate`."""

    def test_valid_documents(self, fixtures_dir, capsys):
        """Test all fixture documents validate."""
        exit_code = main([
            "validate",
            str(fixtures_dir / "test-config.json"),
            str(fixtures_dir / "test-config.ini"),
            str(fixtures_dir / "test-config.yaml"),
        ])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert output.count("✅") == 3
        assert "5 rules (catch-all)" in output
        assert "0 invalid documents" in output

    def test_unreachable_rule_fails(self, tmp_path, capsys):
        """Test a document with a shadowed rule fails validation."""
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([
            {"operation": {"service": "myservice"}, "creditLimit": 1, "resetSeconds": 600},
            {"operation": {"service": "myservice", "method": "PATCH"}, "creditLimit": 100, "resetSeconds": 60},
        ]), encoding="utf-8")

        exit_code = main(["validate", str(path)])

        output = capsys.readouterr().out
        assert exit_code == 1
        assert "❌" in output
        assert "UNREACHABLE_RULE" in output

    def test_require_catch_all(self, tmp_path, capsys):
        """Test --require-catch-all fails documents without a catch-all."""
        path = tmp_path / "rules.json"
        path.write_text('[{"operation": {"method": "GET"}, "creditLimit": 1, "resetSeconds": 1}]', encoding="utf-8")

        assert main(["validate", str(path)]) == 0
        assert main(["validate", "--require-catch-all", str(path)]) == 1
        assert "RULE_LOAD_ERROR" in capsys.readouterr().out

    def test_undecodable_document_fails(self, tmp_path, capsys):
        """Test a document that is not UTF-8 is reported as invalid."""
        path = tmp_path / "rules.yaml"
        path.write_bytes(b"- creditLimit: 1\n  resetSeconds: 1\n  comment: \xff\n")

        exit_code = main(["validate", str(path)])

        output = capsys.readouterr().out
        assert exit_code == 1
        assert "❌" in output
        assert "RULE_LOAD_ERROR" in output

    def test_loader_logs_captured_after_cli_run(self, fixtures_dir, tmp_path):
        """Test loader warnings stay capturable after the CLI configures logging."""
        assert main(["validate", str(fixtures_dir / "test-config.json")]) == 0

        path = tmp_path / "rules.json"
        path.write_text('[{"operation": {"method": "GET"}, "creditLimit": 1, "resetSeconds": 1}]', encoding="utf-8")
        with capture_logs() as logs:
            load_from_file(path)

        assert "Rule document has no catch-all rule" in [entry["event"] for entry in logs]


class TestResolveCommand:
    """Test cases for `ratelimit-policy resolve`."""

    def test_resolve(self, fixtures_dir, capsys):
        """Test the governing rule is printed as JSON."""
        exit_code = main([
            "resolve",
            str(fixtures_dir / "test-config.json"),
            "method=GET", "path=/ping", "isAuthenticated=true", "ip=1.2.3.4",
        ])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == {
            "operation": {"method": "GET", "path": "/ping", "isAuthenticated": "true", "ip": "*"},
            "creditLimit": 100,
            "resetSeconds": 60,
            "actorField": "ip",
            "comment": "100 rpm for /ping for authenticated users, by ip",
        }

    def test_resolve_no_match(self, tmp_path, capsys):
        """Test an unmatched request prints the error and exits 1."""
        path = tmp_path / "rules.ini"
        path.write_text("[gets]\noperation.method = GET\ncreditLimit = 1\nresetSeconds = 1\n", encoding="utf-8")

        exit_code = main(["resolve", str(path), "method=POST"])

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out)["code"] == "NO_MATCHING_RULE"

    def test_resolve_bad_document(self, tmp_path, capsys):
        """Test a broken document exits 2."""
        path = tmp_path / "rules.json"
        path.write_text("{", encoding="utf-8")

        assert main(["resolve", str(path)]) == 2
        assert json.loads(capsys.readouterr().out)["code"] == "RULE_LOAD_ERROR"

    def test_resolve_bad_attribute(self, fixtures_dir):
        """Test malformed attributes are usage errors."""
        with pytest.raises(SystemExit) as exc_info:
            main(["resolve", str(fixtures_dir / "test-config.json"), "method"])

        assert exc_info.value.code == 2
