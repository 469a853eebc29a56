import pytest

from nvrules2kw.handlers.base import RESOURCE_PVC, RESOURCE_WORKLOAD
from nvrules2kw.handlers.selection import (
    POLICY_TRUSTED_REPOS_POLICY_URI,
    RULE_ANNOTATIONS,
    RULE_ENV_VARS,
    RULE_IMAGE,
    RULE_IMAGE_REGISTRY,
    RULE_LABELS,
    RULE_STORAGE_CLASS,
    AnnotationsPolicyHandler,
    EnvVarHandler,
    LabelsPolicyHandler,
    PVCStorageClassHandler,
    TrustedReposHandler,
)
from nvrules2kw.share import (
    CRITERIA_OP_CONTAINS_ALL,
    CRITERIA_OP_CONTAINS_ANY,
    CRITERIA_OP_CONTAINS_OTHER_THAN,
    CRITERIA_OP_EQUAL,
    CRITERIA_OP_NOT_CONTAINS_ANY,
    ConversionError,
    Criterion,
    extract_module_name,
)

SET_CASES = [
    (CRITERIA_OP_CONTAINS_ALL, "doesNotContainAllOf"),
    (CRITERIA_OP_CONTAINS_ANY, "doesNotContainAnyOf"),
    (CRITERIA_OP_CONTAINS_OTHER_THAN, "doesNotContainOtherThan"),
    (CRITERIA_OP_NOT_CONTAINS_ANY, "containsAnyOf"),
]


@pytest.mark.parametrize(
    ("handler_cls", "rule_name"),
    [
        (AnnotationsPolicyHandler, RULE_ANNOTATIONS),
        (LabelsPolicyHandler, RULE_LABELS),
        (EnvVarHandler, RULE_ENV_VARS),
    ],
)
@pytest.mark.parametrize(("op", "expected"), SET_CASES)
def test_negated_set_settings(handler_cls, rule_name, op, expected):
    settings = handler_cls().build_policy_settings(
        [Criterion(name=rule_name, op=op, value="foo,bar")]
    )
    assert settings == {"criteria": expected, "values": ["foo", "bar"]}


@pytest.mark.parametrize(
    "handler_cls", [AnnotationsPolicyHandler, LabelsPolicyHandler, EnvVarHandler]
)
def test_negated_set_requires_single_criterion(handler_cls):
    criteria = [
        Criterion(name="x", op=CRITERIA_OP_CONTAINS_ANY, value="a"),
        Criterion(name="x", op=CRITERIA_OP_CONTAINS_ANY, value="b"),
    ]
    with pytest.raises(ConversionError, match="only one criterion is allowed"):
        handler_cls().build_policy_settings(criteria)


def test_env_var_unknown_operator_raises():
    with pytest.raises(ConversionError, match="unsupported criteria operator: ="):
        EnvVarHandler().build_policy_settings(
            [Criterion(name=RULE_ENV_VARS, op=CRITERIA_OP_EQUAL, value="foo")]
        )


def test_labels_unknown_operator_gives_empty_criteria():
    settings = LabelsPolicyHandler().build_policy_settings(
        [Criterion(name=RULE_LABELS, op=CRITERIA_OP_EQUAL, value="foo")]
    )
    assert settings == {"criteria": "", "values": ["foo"]}


def test_labels_validate_rejects_operator():
    with pytest.raises(ConversionError, match="unsupported operator"):
        LabelsPolicyHandler().validate(Criterion(name=RULE_LABELS, op=CRITERIA_OP_EQUAL))


@pytest.mark.parametrize(
    ("op", "expected"),
    [
        (CRITERIA_OP_CONTAINS_ANY, {"deniedStorageClasses": ["foo", "bar"]}),
        (CRITERIA_OP_NOT_CONTAINS_ANY, {"allowedStorageClasses": ["foo", "bar"]}),
    ],
)
def test_pvc_storage_class_settings(op, expected):
    settings = PVCStorageClassHandler().build_policy_settings(
        [Criterion(name=RULE_STORAGE_CLASS, op=op, value="foo,bar")]
    )
    assert settings == expected


def test_pvc_storage_class_targets_pvc():
    pvc_handler = PVCStorageClassHandler()
    annotations_handler = AnnotationsPolicyHandler()
    assert pvc_handler.applicable_resource == RESOURCE_PVC
    assert annotations_handler.applicable_resource == RESOURCE_WORKLOAD
    with pytest.raises(ConversionError, match="unsupported operator"):
        pvc_handler.validate(Criterion(name=RULE_STORAGE_CLASS, op=CRITERIA_OP_EQUAL))


def test_pvc_storage_class_requires_single_criterion():
    with pytest.raises(ConversionError, match="only one criterion is allowed"):
        PVCStorageClassHandler().build_policy_settings([])


def test_trusted_repos_registry_reject():
    settings = TrustedReposHandler().build_policy_settings(
        [Criterion(name=RULE_IMAGE_REGISTRY, op=CRITERIA_OP_CONTAINS_ANY, value="docker.io,quay.io")]
    )
    assert settings == {"registries": {"reject": ["docker.io", "quay.io"]}}


def test_trusted_repos_image_and_registry():
    settings = TrustedReposHandler().build_policy_settings(
        [
            Criterion(name=RULE_IMAGE, op=CRITERIA_OP_CONTAINS_ANY, value="nginx,redis"),
            Criterion(
                name=RULE_IMAGE_REGISTRY, op=CRITERIA_OP_NOT_CONTAINS_ANY, value="docker.io,quay.io"
            ),
        ]
    )
    assert settings == {
        "registries": {"allow": ["docker.io", "quay.io"]},
        "images": {"reject": ["nginx", "redis"]},
    }


def test_trusted_repos_unknown_criterion_raises():
    with pytest.raises(ConversionError, match="unsupported criterion: labels"):
        TrustedReposHandler().build_policy_settings(
            [Criterion(name=RULE_LABELS, op=CRITERIA_OP_CONTAINS_ANY, value="a")]
        )


def test_trusted_repos_name_from_module():
    handler = TrustedReposHandler()
    assert handler.module == POLICY_TRUSTED_REPOS_POLICY_URI
    assert extract_module_name(handler.module) == "trusted_repos"
    assert handler.name == "trusted_repos"