"""
End-to-end tests: rule document -> rule store -> resolution.
"""

from pathlib import Path

import pytest

from service_ratelimit import RuleEngine, load_from_file
from shared.errors import NoMatchingRuleError, UnreachableRuleError
from shared.metrics import PolicyMetrics

FIXTURES_DIR = Path(__file__).resolve().parents[2] / "service_ratelimit" / "tests" / "fixtures"


@pytest.fixture(params=["test-config.json", "test-config.ini", "test-config.yaml"])
def engine(request):
    """Serving engine built from each fixture format."""
    return RuleEngine(load_from_file(FIXTURES_DIR / request.param))


class TestPolicyResolutionFlow:
    """Test the complete load-and-resolve flow."""

    def test_normal_rules(self, engine):
        """Test requests resolve to the first fully matching rule."""
        rule = engine.resolve({
            "method": "GET",
            "path": "/ping",
            "isAuthenticated": "true",
            "ip": "1.2.3.4",
        })
        assert rule.to_dict() == {
            "operation": {
                "method": "GET",
                "path": "/ping",
                "isAuthenticated": "true",
                "ip": "*",
            },
            "creditLimit": 100,
            "resetSeconds": 60,
            "actorField": "ip",
            "comment": "100 rpm for /ping for authenticated users, by ip",
        }

        rule = engine.resolve({
            "method": "GET",
            "path": "/ping",
            "isAuthenticated": "nope",
            "ip": "1.2.3.4",
        })
        assert rule.to_dict() == {
            "operation": {
                "method": "GET",
                "path": "/ping",
                "ip": "*",
            },
            "creditLimit": 10,
            "resetSeconds": 60,
            "actorField": "ip",
            "comment": "10 rpm for /ping for non-authenticated users, by ip",
        }

        rule = engine.resolve({
            "method": "POST",
            "path": "/blort",
            "isAuthenticated": "nope",
            "ip": "1.2.3.4",
        })
        assert rule.to_dict() == {
            "operation": {
                "method": "POST",
                "ip": "*",
            },
            "creditLimit": 5,
            "resetSeconds": 60,
            "actorField": "ip",
            "comment": "5 rpm for any POST, by ip",
        }

        rule = engine.resolve({"method": "blah"})
        assert rule.to_dict() == {
            "operation": {},
            "creditLimit": 1,
            "resetSeconds": 60,
            "actorField": "",
            "comment": "Default quota",
        }

    def test_glob_key_preceded_by_normal_key(self, engine):
        """Test the /account* rule only applies to authenticated requests."""
        rule = engine.resolve({
            "method": "POST",
            "path": "/accounts/logout",
            "isAuthenticated": "true",
            "ip": "1.2.3.4",
        })
        assert rule.to_dict() == {
            "operation": {
                "method": "POST",
                "path": "/account*",
                "isAuthenticated": "true",
                "ip": "*",
            },
            "creditLimit": 1,
            "resetSeconds": 60,
            "actorField": "ip",
            "comment": "1 rpm for POST /account*, by ip",
        }

        rule = engine.resolve({
            "method": "POST",
            "path": "/accounts/logout",
            "isAuthenticated": "nope",
            "ip": "1.2.3.4",
        })
        assert rule.comment == "5 rpm for any POST, by ip"


class TestPolicyReconfiguration:
    """Test replacing a configuration by building a new store."""

    def test_swap_engine(self, tmp_path):
        """Test a new document yields a new engine without touching the old one."""
        metrics = PolicyMetrics()
        old_engine = RuleEngine(load_from_file(FIXTURES_DIR / "test-config.json", metrics=metrics))

        path = tmp_path / "strict.json"
        path.write_text(
            '{"rules": [{"operation": {"method": "GET"}, "creditLimit": 50, "resetSeconds": 30}]}',
            encoding="utf-8",
        )
        new_engine = RuleEngine(load_from_file(path, metrics=metrics))

        assert old_engine.resolve({"method": "POST"}).comment == "Default quota"
        assert new_engine.resolve({"method": "GET"}).credit_limit == 50
        with pytest.raises(NoMatchingRuleError):
            new_engine.resolve({"method": "POST"})

        assert metrics.get_sample("ratelimit_store_rules", {"store": "test-config"}) == 5.0
        assert metrics.get_sample("ratelimit_store_rules", {"store": "strict"}) == 1.0

    def test_unreachable_rule_aborts_load(self, tmp_path):
        """Test a shadowed rule stops the document from loading."""
        path = tmp_path / "bad.ini"
        path.write_text(
            "[get]\noperation.service = myservice\noperation.method = GET\ncreditLimit = 100\nresetSeconds = 60\n"
            "[post]\noperation.service = myservice\noperation.method = POST\ncreditLimit = 10\nresetSeconds = 20\n"
            "[service]\noperation.service = myservice\ncreditLimit = 1\nresetSeconds = 600\n"
            "[post again]\noperation.service = myservice\noperation.method = POST\ncreditLimit = 100\nresetSeconds = 60\n",
            encoding="utf-8",
        )

        with pytest.raises(UnreachableRuleError, match="Unreachable rule"):
            load_from_file(path)
