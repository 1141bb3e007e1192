"""Unit tests for the storage class decision engine."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from contracts.policy import PolicyVerdict
from contracts.settings import PolicySettings
from engine.policy import StorageClassPolicyEngine, decide, parse_volume_claim
from engine.settings import validate_settings


# ── helpers ─────────────────────────────────────────────────────────


def _deny(*names: str, fallback: str | None = None) -> PolicySettings:
    return validate_settings(
        {"deniedStorageClasses": list(names), "fallbackStorageClass": fallback}
    )


def _allow(*names: str, fallback: str | None = None) -> PolicySettings:
    return validate_settings(
        {"allowedStorageClasses": list(names), "fallbackStorageClass": fallback}
    )


def _pvc(storage_class: str | None = None, *, with_spec: bool = True) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": "data",
            "namespace": "default",
            "labels": {"app": "db"},
            "annotations": {"volume.beta.kubernetes.io/storage-provisioner": "ebs.csi.aws.com"},
        },
    }
    if with_spec:
        obj["spec"] = {
            "accessModes": ["ReadWriteOnce"],
            "resources": {"requests": {"storage": "10Gi"}},
            "volumeMode": "Filesystem",
        }
        if storage_class is not None:
            obj["spec"]["storageClassName"] = storage_class
    return obj


def _pod() -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": "web"},
        "spec": {"containers": [{"name": "nginx", "image": "nginx"}]},
    }


# ── claim parsing ───────────────────────────────────────────────────


class TestParseVolumeClaim:
    def test_parses_claim(self) -> None:
        claim = parse_volume_claim(_pvc("fast"))
        assert claim is not None
        assert claim.storage_class_name == "fast"

    def test_absent_class_reads_as_empty(self) -> None:
        assert parse_volume_claim(_pvc()).storage_class_name == ""

    def test_absent_spec_reads_as_empty(self) -> None:
        assert parse_volume_claim(_pvc(with_spec=False)).storage_class_name == ""

    def test_null_class_reads_as_empty(self) -> None:
        obj = _pvc()
        obj["spec"]["storageClassName"] = None
        assert parse_volume_claim(obj).storage_class_name == ""

    @pytest.mark.parametrize(
        "obj",
        [
            None,
            "PersistentVolumeClaim",
            [],
            {},
            {"apiVersion": "v1", "kind": "Pod"},
            {"apiVersion": "apps/v1", "kind": "PersistentVolumeClaim"},
            {"apiVersion": "v1", "kind": "PersistentVolumeClaim", "spec": ["x"]},
            {"apiVersion": "v1", "kind": "PersistentVolumeClaim", "spec": {"storageClassName": 7}},
        ],
    )
    def test_other_shapes_are_not_claims(self, obj: Any) -> None:
        assert parse_volume_claim(obj) is None


# ── pass-through ────────────────────────────────────────────────────


class TestPassThrough:
    def test_other_kinds_are_accepted(self) -> None:
        decision = decide(_deny("slow"), _pod())
        assert decision.verdict == PolicyVerdict.ACCEPT
        assert decision.storage_class is None
        assert decision.mutated_object is None

    def test_other_kinds_accepted_under_allow_list(self) -> None:
        decision = decide(_allow("fast"), _pod())
        assert decision.verdict == PolicyVerdict.ACCEPT

    def test_garbage_object_is_accepted(self) -> None:
        assert decide(_allow("fast"), {"not": "a resource"}).accepted


# ── deny list ───────────────────────────────────────────────────────


class TestDenyList:
    def test_unlisted_class_accepted(self) -> None:
        decision = decide(_deny("slow", "standard"), _pvc("fast"))
        assert decision.verdict == PolicyVerdict.ACCEPT
        assert decision.storage_class == "fast"

    def test_denied_class_rejected(self) -> None:
        decision = decide(_deny("slow", "standard"), _pvc("slow"))
        assert decision.verdict == PolicyVerdict.REJECT
        assert decision.reason == 'storage class "slow" is not allowed'
        assert not decision.accepted

    def test_denied_class_mutated_to_fallback(self) -> None:
        decision = decide(_deny("slow", "fast", fallback="standard"), _pvc("slow"))
        assert decision.verdict == PolicyVerdict.MUTATE
        assert decision.accepted
        assert decision.mutated_object["spec"]["storageClassName"] == "standard"

    def test_absent_class_denied_as_empty_string(self) -> None:
        decision = decide(_deny(""), _pvc())
        assert decision.verdict == PolicyVerdict.REJECT
        assert decision.reason == 'storage class "" is not allowed'

    def test_absent_class_accepted_when_empty_not_denied(self) -> None:
        assert decide(_deny("slow"), _pvc()).verdict == PolicyVerdict.ACCEPT


# ── allow list ──────────────────────────────────────────────────────


class TestAllowList:
    def test_listed_class_accepted(self) -> None:
        decision = decide(_allow("slow", "standard"), _pvc("slow"))
        assert decision.verdict == PolicyVerdict.ACCEPT
        assert decision.mutated_object is None

    def test_unlisted_class_rejected(self) -> None:
        decision = decide(_allow("slow", "standard"), _pvc("fast"))
        assert decision.verdict == PolicyVerdict.REJECT
        assert decision.reason == 'storage class "fast" is not allowed'

    def test_unlisted_class_mutated_to_fallback(self) -> None:
        decision = decide(_allow("slow", "standard", fallback="standard"), _pvc("fast"))
        assert decision.verdict == PolicyVerdict.MUTATE
        assert decision.mutated_object["spec"]["storageClassName"] == "standard"

    def test_fallback_class_itself_is_not_mutated(self) -> None:
        decision = decide(_allow("slow", "standard", fallback="standard"), _pvc("standard"))
        assert decision.verdict == PolicyVerdict.ACCEPT
        assert decision.mutated_object is None

    def test_absent_class_rejected_with_empty_name(self) -> None:
        decision = decide(_allow("fast"), _pvc())
        assert decision.reason == 'storage class "" is not allowed'

    def test_empty_string_can_be_allowed(self) -> None:
        assert decide(_allow("", "fast"), _pvc()).verdict == PolicyVerdict.ACCEPT


# ── mutation ────────────────────────────────────────────────────────


class TestMutation:
    def test_only_storage_class_changes(self) -> None:
        original = _pvc("slow")
        decision = decide(_deny("slow", fallback="standard"), original)

        expected = copy.deepcopy(original)
        expected["spec"]["storageClassName"] = "standard"
        assert decision.mutated_object == expected

    def test_input_object_is_not_modified(self) -> None:
        original = _pvc("slow")
        snapshot = copy.deepcopy(original)
        decide(_deny("slow", fallback="standard"), original)
        assert original == snapshot

    def test_unknown_fields_survive(self) -> None:
        original = _pvc("slow")
        original["spec"]["dataSourceRef"] = {"kind": "VolumeSnapshot", "name": "snap"}
        original["x-extension"] = {"nested": [1, 2, 3]}
        mutated = decide(_deny("slow", fallback="standard"), original).mutated_object
        assert mutated["spec"]["dataSourceRef"] == {"kind": "VolumeSnapshot", "name": "snap"}
        assert mutated["x-extension"] == {"nested": [1, 2, 3]}

    def test_missing_class_is_filled_in(self) -> None:
        mutated = decide(_allow("fast", fallback="fast"), _pvc()).mutated_object
        assert mutated["spec"]["storageClassName"] == "fast"
        assert mutated["spec"]["accessModes"] == ["ReadWriteOnce"]

    def test_missing_spec_is_created(self) -> None:
        mutated = decide(_allow("fast", fallback="fast"), _pvc(with_spec=False)).mutated_object
        assert mutated["spec"] == {"storageClassName": "fast"}

    @pytest.mark.parametrize(
        "settings, storage_class",
        [
            (_deny("slow", "fast", fallback="standard"), "slow"),
            (_deny("", fallback="standard"), None),
            (_allow("slow", "standard", fallback="standard"), "fast"),
            (_allow("slow", fallback="slow"), None),
        ],
    )
    def test_deciding_on_mutated_object_accepts(
        self, settings: PolicySettings, storage_class: str | None
    ) -> None:
        first = decide(settings, _pvc(storage_class))
        assert first.verdict == PolicyVerdict.MUTATE
        second = decide(settings, first.mutated_object)
        assert second.verdict == PolicyVerdict.ACCEPT
        assert second.mutated_object is None


# ── scenarios ───────────────────────────────────────────────────────


class TestScenarios:
    @pytest.mark.parametrize(
        "settings, storage_class, verdict, expected",
        [
            (_deny("slow", "standard"), "slow", PolicyVerdict.REJECT, 'storage class "slow" is not allowed'),
            (_deny("slow", "fast", fallback="standard"), "slow", PolicyVerdict.MUTATE, "standard"),
            (_allow("slow", "standard"), "fast", PolicyVerdict.REJECT, 'storage class "fast" is not allowed'),
            (_allow("slow", "standard", fallback="standard"), "fast", PolicyVerdict.MUTATE, "standard"),
            (_allow("slow", "standard"), "slow", PolicyVerdict.ACCEPT, None),
        ],
    )
    def test_scenario(
        self,
        settings: PolicySettings,
        storage_class: str,
        verdict: PolicyVerdict,
        expected: str | None,
    ) -> None:
        decision = decide(settings, _pvc(storage_class))
        assert decision.verdict == verdict
        if verdict == PolicyVerdict.REJECT:
            assert decision.reason == expected
        elif verdict == PolicyVerdict.MUTATE:
            assert decision.mutated_object["spec"]["storageClassName"] == expected
        else:
            assert decision.mutated_object is None


# ── engine object ───────────────────────────────────────────────────


class TestStorageClassPolicyEngine:
    def test_engine_applies_its_settings(self) -> None:
        engine = StorageClassPolicyEngine(_deny("slow"))
        assert engine.decide(_pvc("slow")).verdict == PolicyVerdict.REJECT
        assert engine.decide(_pvc("fast")).verdict == PolicyVerdict.ACCEPT

    def test_engine_exposes_settings(self) -> None:
        settings = _allow("fast")
        assert StorageClassPolicyEngine(settings).settings is settings

    def test_engine_refuses_raw_settings(self) -> None:
        with pytest.raises(TypeError, match="PolicySettings"):
            StorageClassPolicyEngine({"deniedStorageClasses": ["slow"]})  # type: ignore[arg-type]
