import pytest

from nvrules2kw.handlers.security import (
    RULE_ALLOW_PRIVILEGED_ESCALATION,
    RULE_RUN_AS_PRIVILEGED,
    RULE_RUN_AS_ROOT,
    RULE_SHARE_IPC,
    RULE_SHARE_NETWORK,
    RULE_SHARE_PID,
    HostNamespaceHandler,
)
from nvrules2kw.metacriterion import MetaCriterion, PSPBestPracticeMetaCriterion
from nvrules2kw.share import CRITERIA_OP_CONTAINS_ANY, CRITERIA_OP_EQUAL


def test_expand_names_in_order():
    names = [c.name for c in PSPBestPracticeMetaCriterion().expand()]
    assert names == [
        RULE_SHARE_IPC,
        RULE_SHARE_NETWORK,
        RULE_SHARE_PID,
        RULE_RUN_AS_PRIVILEGED,
        RULE_RUN_AS_ROOT,
        RULE_ALLOW_PRIVILEGED_ESCALATION,
    ]


def test_expand_uses_equal_true():
    criteria = PSPBestPracticeMetaCriterion().expand()
    assert all(c.op == CRITERIA_OP_EQUAL for c in criteria)
    assert all(c.value == "true" for c in criteria)


def test_expand_returns_fresh_criteria():
    meta = PSPBestPracticeMetaCriterion()
    first = meta.expand()
    first[0].value = "false"
    second = meta.expand()
    assert second[0].value == "true"
    assert first[0] is not second[0]


def test_supported_ops():
    meta = PSPBestPracticeMetaCriterion()
    assert CRITERIA_OP_EQUAL in meta.supported_ops
    assert CRITERIA_OP_CONTAINS_ANY not in meta.supported_ops


def test_expanded_host_criteria_deny_all_sharing():
    host_names = {RULE_SHARE_IPC, RULE_SHARE_NETWORK, RULE_SHARE_PID}
    host_criteria = [c for c in PSPBestPracticeMetaCriterion().expand() if c.name in host_names]
    settings = HostNamespaceHandler().build_policy_settings(host_criteria)
    assert len(host_criteria) == 3
    assert not any(settings.values())


def test_meta_criterion_is_abstract():
    with pytest.raises(TypeError):
        MetaCriterion()