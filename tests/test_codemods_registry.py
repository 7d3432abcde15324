import pytest

from forksmith.errors import RewriteError
from forksmith.rewrite import RULE_ORDER, all_rules, ordered_rules


def test_every_listed_rule_is_registered():
    assert [rule.name for rule in all_rules()] == RULE_ORDER


def test_default_run_skips_optional_rules():
    names = [rule.name for rule in ordered_rules()]
    assert "otel-bootstrap" not in names
    assert names == [name for name in RULE_ORDER if name != "otel-bootstrap"]
    assert "otel-bootstrap" in [rule.name for rule in ordered_rules(include_optional=True)]


def test_selected_rules_run_in_registry_order():
    names = [rule.name for rule in ordered_rules(["telemetry", "env-access", "otel-bootstrap"])]
    assert names == ["env-access", "otel-bootstrap", "telemetry"]


def test_unknown_rule_names_are_rejected():
    with pytest.raises(RewriteError):
        ordered_rules(["no-such-codemod"])
