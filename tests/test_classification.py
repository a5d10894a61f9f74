import threading

import pytest

from finboard.classification import (
    CLASSIFICATION_TAGS,
    EMPTY_MAP,
    REFERENCE_CLASSIFICATIONS,
    UNCLASSIFIED,
    ClassificationRegistry,
    FinancialGroup,
    group_of,
    partition_labels,
    resolve,
    tags_in,
)
from finboard.errors import ClassificationPermissionError, InvalidClassificationError


def test_every_reference_label_maps_to_a_known_tag():
    assert set(REFERENCE_CLASSIFICATIONS.values()) <= set(CLASSIFICATION_TAGS)


def test_tags_in_group():
    assert tags_in(FinancialGroup.REVENUE) == {"Other Revenue", "Qual Revenue", "Quant Revenue"}
    assert tags_in(FinancialGroup.TAXES) == {"Tax Cost"}
    assert "Depreciation" in tags_in(FinancialGroup.OPERATING)


def test_non_admin_cannot_replace():
    reg = ClassificationRegistry()
    with pytest.raises(ClassificationPermissionError):
        reg.replace({"Sales": "Other Revenue"}, actor_role="viewer")
    assert reg.active() is EMPTY_MAP


def test_unknown_tag_is_rejected_and_nothing_changes():
    reg = ClassificationRegistry()
    first = reg.replace({"Sales": "Other Revenue"}, actor_role="admin")
    with pytest.raises(InvalidClassificationError):
        reg.replace({"Sales": "Miscellaneous"}, actor_role="admin")
    with pytest.raises(InvalidClassificationError):
        reg.replace({"   ": "Admin Cost"}, actor_role="admin")
    assert reg.active() is first


def test_replace_builds_a_new_version():
    reg = ClassificationRegistry()
    v1 = reg.replace({"Sales": "Other Revenue"}, actor_role="admin", actor="alice")
    v2 = reg.replace({" Rent ": "Admin Cost"}, actor_role="admin")

    assert (v1.version, v2.version) == (1, 2)
    assert v1.created_by == "alice"
    # The old snapshot is untouched by the later edit.
    assert v1.get("Rent") is None
    assert v2.get("Rent") == "Admin Cost"
    assert v2.get("Sales") is None
    assert reg.active() is v2


def test_maps_are_read_only():
    reg = ClassificationRegistry()
    cmap = reg.replace({"Sales": "Other Revenue"}, actor_role="admin")
    with pytest.raises(TypeError):
        cmap.mappings["Rent"] = "Admin Cost"


def test_resolve_and_group_of():
    reg = ClassificationRegistry()
    cmap = reg.replace(REFERENCE_CLASSIFICATIONS, actor_role="admin")
    assert resolve(" Sales ", cmap) == "Other Revenue"
    assert resolve("Mystery Item", cmap) == UNCLASSIFIED
    assert group_of("Income Tax", cmap) is FinancialGroup.TAXES
    assert group_of("Mystery Item", cmap) is None


def test_partition_labels_keeps_order_and_drops_duplicates():
    reg = ClassificationRegistry()
    cmap = reg.replace(REFERENCE_CLASSIFICATIONS, actor_role="admin")
    part = partition_labels(
        ["Rent", "Sales", "Mystery", "Office Expenses", "Rent", " ", "Another"], cmap
    )
    assert part.known[FinancialGroup.OPERATING] == ("Rent", "Office Expenses")
    assert part.known[FinancialGroup.REVENUE] == ("Sales",)
    assert part.known[FinancialGroup.FINANCING] == ()
    assert part.unknown == ("Mystery", "Another")
    assert sorted(part.all_labels()) == sorted(
        ["Rent", "Sales", "Mystery", "Office Expenses", "Another"]
    )


def test_concurrent_replacements_produce_distinct_versions():
    reg = ClassificationRegistry()
    versions: list[int] = []
    lock = threading.Lock()

    def worker(i: int) -> None:
        cmap = reg.replace({f"Label {i}": "Admin Cost"}, actor_role="admin")
        with lock:
            versions.append(cmap.version)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(versions) == list(range(1, 21))
    assert reg.active().version == 20
    assert len(reg.active()) == 1
