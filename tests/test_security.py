import pytest

from nvrules2kw.handlers.security import (
    RULE_ALLOW_PRIVILEGED_ESCALATION,
    RULE_NAMESPACE,
    RULE_RUN_AS_PRIVILEGED,
    RULE_RUN_AS_ROOT,
    RULE_SHARE_IPC,
    RULE_SHARE_NETWORK,
    RULE_SHARE_PID,
    AllowPrivilegedEscalationHandler,
    ContainerRunningAsUserHandler,
    HostNamespaceHandler,
    NamespaceHandler,
    PodPrivilegedHandler,
)
from nvrules2kw.share import (
    CRITERIA_OP_CONTAINS_ANY,
    CRITERIA_OP_EQUAL,
    ConversionError,
    Criterion,
)


def _eq(name, value):
    return Criterion(name=name, op=CRITERIA_OP_EQUAL, value=value)


def test_allow_privileged_escalation_settings():
    handler = AllowPrivilegedEscalationHandler()
    settings = handler.build_policy_settings([_eq(RULE_ALLOW_PRIVILEGED_ESCALATION, "true")])
    assert settings == {"default_allow_privilege_escalation": True}
    assert handler.module == (
        "registry://ghcr.io/kubewarden/policies/allow-privilege-escalation-psp:v1.0.0"
    )


def test_container_running_as_user_settings():
    handler = ContainerRunningAsUserHandler()
    assert handler.build_policy_settings([_eq(RULE_RUN_AS_ROOT, "true")]) == {}
    assert handler.name == "container_running_as_user"


def test_pod_privileged_settings():
    handler = PodPrivilegedHandler()
    assert handler.build_policy_settings([_eq(RULE_RUN_AS_PRIVILEGED, "true")]) == {}
    assert handler.name == "pod_privileged"


@pytest.mark.parametrize("value, expected", [("true", False), ("false", True)])
def test_get_bool_value(value, expected):
    assert HostNamespaceHandler().get_bool_value(value) is expected


def test_get_bool_value_invalid():
    with pytest.raises(ConversionError, match="invalid"):
        HostNamespaceHandler().get_bool_value("invalid")


@pytest.mark.parametrize(
    "criteria, expected",
    [
        (
            [_eq(RULE_SHARE_IPC, "true")],
            {"allow_host_ipc": False, "allow_host_network": True, "allow_host_pid": True},
        ),
        (
            [_eq(RULE_SHARE_NETWORK, "true")],
            {"allow_host_ipc": True, "allow_host_network": False, "allow_host_pid": True},
        ),
        (
            [_eq(RULE_SHARE_PID, "true")],
            {"allow_host_ipc": True, "allow_host_network": True, "allow_host_pid": False},
        ),
        (
            [_eq(RULE_SHARE_PID, "false")],
            {"allow_host_ipc": True, "allow_host_network": True, "allow_host_pid": True},
        ),
        (
            [_eq(RULE_SHARE_IPC, "true"), _eq(RULE_SHARE_NETWORK, "true")],
            {"allow_host_ipc": False, "allow_host_network": False, "allow_host_pid": True},
        ),
        (
            [
                _eq(RULE_SHARE_IPC, "true"),
                _eq(RULE_SHARE_NETWORK, "true"),
                _eq(RULE_SHARE_PID, "true"),
            ],
            {"allow_host_ipc": False, "allow_host_network": False, "allow_host_pid": False},
        ),
        (
            [
                _eq(RULE_SHARE_IPC, "false"),
                _eq(RULE_SHARE_NETWORK, "false"),
                _eq(RULE_SHARE_PID, "false"),
            ],
            {"allow_host_ipc": True, "allow_host_network": True, "allow_host_pid": True},
        ),
    ],
)
def test_host_namespace_settings(criteria, expected):
    assert HostNamespaceHandler().build_policy_settings(criteria) == expected


def test_host_namespace_rejects_other_criterion():
    with pytest.raises(ConversionError, match="unsupported criterion: runAsRoot"):
        HostNamespaceHandler().build_policy_settings([_eq(RULE_RUN_AS_ROOT, "true")])


def test_host_namespace_propagates_bad_value():
    with pytest.raises(ConversionError):
        HostNamespaceHandler().build_policy_settings([_eq(RULE_SHARE_IPC, "maybe")])


def test_namespace_handler_never_builds_settings():
    criterion = Criterion(name=RULE_NAMESPACE, op=CRITERIA_OP_CONTAINS_ANY, value="ns1")
    with pytest.raises(ConversionError, match="should never be done"):
        NamespaceHandler().build_policy_settings([criterion])