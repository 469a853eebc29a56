import pytest

from nvrules2kw.customrule import RULE_CUSTOM, is_custom_rule


@pytest.mark.parametrize("name", [RULE_CUSTOM, ""])
def test_custom_names_are_recognised(name):
    assert is_custom_rule(name) is True


@pytest.mark.parametrize("name", ["namespace", "shareIpcWithHost", "customPathX", "CustomPath"])
def test_other_names_are_not_custom(name):
    assert is_custom_rule(name) is False