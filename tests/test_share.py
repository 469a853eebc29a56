import pytest

from nvrules2kw.share import AdmissionRule, Criterion, extract_module_name


@pytest.mark.parametrize(
    ("module", "expected"),
    [
        ("registry://ghcr.io/kubewarden/policies/host-namespaces-psp:v0.1.7_policy", "host_namespaces_psp"),
        ("ghcr.io/kubewarden/policies/host-namespaces-psp:v0.1.7", "host_namespaces_psp"),
        ("registry://ghcr.io/kubewarden/policies/host-namespaces-psp", "host_namespaces_psp"),
        ("ghcr.io/kubewarden/policies/host-namespaces-psp", "host_namespaces_psp"),
        ("foo/bar", "bar"),
        ("foo", "foo"),
        ("foo:bar", "foo"),
        ("registry://foo", "foo"),
    ],
)
def test_extract_module_name(module, expected):
    assert extract_module_name(module) == expected


def test_criterion_round_trip():
    original = Criterion(
        name="shareIpcWithHost",
        op="=",
        value="true",
        path="item.spec.hostIPC",
        type="customPath",
        value_type="key",
        sub_criteria=[Criterion(name="inner", op="=", value="x")],
    )
    assert Criterion.from_dict(original.to_dict()) == original


def test_criterion_to_dict_omits_empty_optional_fields():
    assert Criterion(name="labels", op="containsAny", value="a,b").to_dict() == {
        "name": "labels",
        "op": "containsAny",
        "value": "a,b",
    }


def test_criterion_from_dict_renders_scalars_as_text():
    crit = Criterion.from_dict({"name": "cveHighCount", "op": ">=", "value": 10})
    assert crit.value == "10"
    crit = Criterion.from_dict({"name": "shareIpcWithHost", "op": "=", "value": True})
    assert crit.value == "true"


def test_admission_rule_round_trip():
    rule = AdmissionRule(
        id=1001,
        category="Kubernetes",
        comment="no host ipc",
        criteria=[Criterion(name="shareIpcWithHost", op="=", value="true")],
        cfg_type="user_created",
        rule_type="deny",
        rule_mode="protect",
        containers=["containers"],
    )
    assert AdmissionRule.from_dict(rule.to_dict()) == rule


def test_admission_rule_defaults_for_missing_fields():
    rule = AdmissionRule.from_dict({"id": 1500})
    assert rule == AdmissionRule(id=1500)


def test_admission_rule_rejects_non_mapping():
    with pytest.raises(TypeError):
        AdmissionRule.from_dict(["not", "a", "rule"])


def test_admission_rule_rejects_out_of_range_id():
    with pytest.raises(ValueError):
        AdmissionRule.from_dict({"id": -1})


def test_admission_rule_rejects_bool_id():
    with pytest.raises(TypeError):
        AdmissionRule.from_dict({"id": True})