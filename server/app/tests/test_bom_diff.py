from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.bom.diff import (
    get_element_type_with_updated_bom,
    latest_revision_ids,
    list_element_types_with_updated_bom,
    merge_required_adjustment,
)
from app.db import Base
from app.models import (
    Activity,
    BomProduct,
    Element,
    ElementType,
    ElementTypeBOM,
    ElementTypeRevisionBOM,
    Project,
)


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def create_project(db, project_id=1, name="Tower A"):
    project = Project(project_id=project_id, name=name)
    db.add(project)
    for product_id in (100, 101, 102):
        if db.get(BomProduct, product_id) is None:
            db.add(BomProduct(id=product_id, product_name=f"Product {product_id}"))
    db.flush()
    return project


def create_element_type(db, project, *, element_type_id=7, name="Beam B1", version="RV-2", bom=()):
    element_type = ElementType(
        element_type_id=element_type_id,
        project_id=project.project_id,
        element_type_name=name,
        element_type_version=version,
        created_by="Planner",
    )
    db.add(element_type)
    db.flush()
    for product_id, quantity in bom:
        db.add(
            ElementTypeBOM(
                element_type_id=element_type.element_type_id,
                project_id=project.project_id,
                product_id=product_id,
                product_name=f"Product {product_id}",
                quantity=quantity,
            )
        )
    db.flush()
    return element_type


def current_line_id(db, element_type, product_id):
    line = (
        db.query(ElementTypeBOM)
        .filter(ElementTypeBOM.element_type_id == element_type.element_type_id, ElementTypeBOM.product_id == product_id)
        .first()
    )
    # Lines removed from the current BOM keep a link id that no longer resolves.
    return line.id if line else 9000 + product_id


def add_revision(db, element_type, revision_id, lines, changed_at=None, product_names=None):
    changed_at = changed_at or datetime(2025, 1, 1, 12, 0, 0)
    product_names = product_names or {}
    for product_id, quantity in lines:
        db.add(
            ElementTypeRevisionBOM(
                revision_id=revision_id,
                element_type_bom_id=current_line_id(db, element_type, product_id),
                element_type_id=element_type.element_type_id,
                project_id=element_type.project_id,
                product_id=product_id,
                product_name=product_names.get(product_id, f"Product {product_id}"),
                quantity=quantity,
                changed_at=changed_at,
            )
        )
    db.flush()


def create_element(db, element_type, code="E-001", *, bom_revision_id=42, instage=True, completed=True, inv_adjust=False):
    element = Element(
        element_id=code,
        element_type_id=element_type.element_type_id,
        project_id=element_type.project_id,
        bom_revision_id=bom_revision_id,
        drawing_revision_id=3,
        instage=instage,
        inv_adjust=inv_adjust,
    )
    db.add(element)
    db.flush()
    db.add(Activity(element_id=element.id, project_id=element_type.project_id, name="Casting", completed=completed))
    db.flush()
    return element


def adjustment_tuples(record):
    return [
        (line.product_id, line.quantity, line.revision_quantity, line.quantity_change)
        for line in record.bom_required_adjustment
    ]


def test_quantity_change_only_reports_single_adjustment():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5), (101, 3)])
    add_revision(db, element_type, 42, [(100, 4), (101, 3)])
    element = create_element(db, element_type)

    records = list_element_types_with_updated_bom(db, 1)

    assert len(records) == 1
    record = records[0]
    assert record.element_type_id == 7
    assert adjustment_tuples(record) == [(100, 5, 4, 1)]
    assert [(line.product_id, line.quantity) for line in record.bom_product] == [(100, 5)]
    assert [(line.product_id, line.quantity) for line in record.bom_revision_product] == [(100, 4)]
    assert [entry.element_id for entry in record.elements] == [element.id]
    assert record.elements[0].bom_revision_id == 42


def test_added_line_reports_positive_adjustment():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5), (101, 3), (102, 2)])
    add_revision(db, element_type, 42, [(100, 5), (101, 3)])
    create_element(db, element_type)

    record = list_element_types_with_updated_bom(db, 1)[0]

    assert adjustment_tuples(record) == [(102, 2, 0, 2)]
    assert record.bom_revision_product == []


def test_removed_line_reports_negative_adjustment():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 5), (101, 3)])
    create_element(db, element_type)

    record = list_element_types_with_updated_bom(db, 1)[0]

    assert adjustment_tuples(record) == [(101, 0, 3, -3)]
    assert record.bom_product == []
    assert [(line.product_id, line.quantity) for line in record.bom_revision_product] == [(101, 3)]


def test_identical_revision_yields_empty_diff():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5), (101, 3)])
    add_revision(db, element_type, 42, [(100, 5), (101, 3)])
    create_element(db, element_type)

    record = list_element_types_with_updated_bom(db, 1)[0]

    assert record.bom_product == []
    assert record.bom_revision_product == []
    assert record.bom_required_adjustment == []


def test_product_name_change_without_quantity_change_is_not_a_difference():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 5)], product_names={100: "Old cement name"})
    create_element(db, element_type)

    record = list_element_types_with_updated_bom(db, 1)[0]

    assert record.bom_required_adjustment == []


def test_null_quantity_matches_zero():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, None), (101, 3)])
    add_revision(db, element_type, 42, [(100, 0), (101, 3)])
    create_element(db, element_type)

    record = list_element_types_with_updated_bom(db, 1)[0]

    assert record.bom_product == []
    assert record.bom_required_adjustment == []


@pytest.mark.parametrize("version", ["RV-1", "VR-1", "RV-01"])
def test_initial_versions_are_never_reported(version):
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, version=version, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 4)])
    create_element(db, element_type)

    assert list_element_types_with_updated_bom(db, 1) == []
    assert get_element_type_with_updated_bom(db, 1, 7) is None


@pytest.mark.parametrize(
    "element_kwargs",
    [
        {"instage": False},
        {"inv_adjust": True},
        {"completed": False},
    ],
)
def test_ineligible_elements_are_not_reported(element_kwargs):
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 4)])
    create_element(db, element_type, **element_kwargs)

    assert list_element_types_with_updated_bom(db, 1) == []


def test_latched_element_type_is_not_reported():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 4)])
    create_element(db, element_type)
    element_type.inv_adjust = True
    db.flush()

    assert list_element_types_with_updated_bom(db, 1) == []
    assert get_element_type_with_updated_bom(db, 1, 7) is None


def test_other_projects_are_not_reported():
    db = create_session()
    project = create_project(db)
    create_project(db, project_id=2, name="Tower B")
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 4)])
    create_element(db, element_type)

    assert list_element_types_with_updated_bom(db, 2) == []


def test_element_with_several_completed_activities_is_listed_once():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 4)])
    element = create_element(db, element_type)
    db.add(Activity(element_id=element.id, project_id=1, name="Curing", completed=True))
    db.flush()

    records = list_element_types_with_updated_bom(db, 1)

    assert len(records) == 1
    assert len(records[0].elements) == 1


def test_elements_with_different_revisions_get_separate_records():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5), (101, 3)])
    add_revision(db, element_type, 42, [(100, 4), (101, 3)], changed_at=datetime(2025, 1, 1))
    add_revision(db, element_type, 43, [(100, 5), (101, 1)], changed_at=datetime(2025, 2, 1))
    create_element(db, element_type, "E-001", bom_revision_id=42)
    create_element(db, element_type, "E-002", bom_revision_id=43)
    create_element(db, element_type, "E-003", bom_revision_id=42)

    records = list_element_types_with_updated_bom(db, 1)

    assert len(records) == 2
    by_revision = {record.elements[0].bom_revision_id: record for record in records}
    assert [entry.element_code for entry in by_revision[42].elements] == ["E-001", "E-003"]
    assert adjustment_tuples(by_revision[42]) == [(100, 5, 4, 1)]
    assert [entry.element_code for entry in by_revision[43].elements] == ["E-002"]
    assert adjustment_tuples(by_revision[43]) == [(101, 3, 1, 2)]


def test_records_are_ordered_by_element_type_name():
    db = create_session()
    project = create_project(db)
    column = create_element_type(db, project, element_type_id=8, name="Column C1", bom=[(100, 5)])
    beam = create_element_type(db, project, element_type_id=7, name="Beam B1", bom=[(100, 5)])
    add_revision(db, column, 50, [(100, 4)])
    add_revision(db, beam, 51, [(100, 4)])
    create_element(db, column, "C-001", bom_revision_id=50)
    create_element(db, beam, "B-002", bom_revision_id=51)
    create_element(db, beam, "B-001", bom_revision_id=51)

    records = list_element_types_with_updated_bom(db, 1)

    assert [record.element_type_name for record in records] == ["Beam B1", "Column C1"]
    assert [entry.element_code for entry in records[0].elements] == ["B-001", "B-002"]


def test_element_stamped_with_pending_revision_has_no_diff():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    add_revision(db, element_type, 42, [(100, 4)])
    element_type.pending_bom_revision_id = 43
    create_element(db, element_type, bom_revision_id=43)

    record = list_element_types_with_updated_bom(db, 1)[0]

    assert record.bom_product == []
    assert record.bom_required_adjustment == []


def test_latest_revision_window_groups_bulk_edits():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5), (101, 3)])
    latest = datetime(2025, 3, 1, 9, 30, 0)
    add_revision(db, element_type, 9, [(100, 1)], changed_at=latest - timedelta(milliseconds=1500))
    add_revision(db, element_type, 10, [(100, 4)], changed_at=latest - timedelta(seconds=1))
    add_revision(db, element_type, 11, [(101, 2)], changed_at=latest)
    create_element(db, element_type, bom_revision_id=9)

    assert latest_revision_ids(db, element_type) == [10, 11]

    record = get_element_type_with_updated_bom(db, 1, 7)

    assert record is not None
    assert adjustment_tuples(record) == [(100, 5, 4, 1), (101, 3, 2, 1)]
    assert [entry.bom_revision_id for entry in record.elements] == [11]


def test_latest_window_revision_matching_current_line_hides_it_from_merge():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    latest = datetime(2025, 3, 1, 9, 30, 0)
    add_revision(db, element_type, 10, [(100, 5)], changed_at=latest - timedelta(milliseconds=500))
    add_revision(db, element_type, 11, [(100, 4)], changed_at=latest)
    create_element(db, element_type, bom_revision_id=10)

    record = get_element_type_with_updated_bom(db, 1, 7)

    assert record.bom_product == []
    assert [(line.product_id, line.quantity) for line in record.bom_revision_product] == [(100, 4)]
    assert adjustment_tuples(record) == [(100, 0, 4, -4)]


def test_latest_revision_mode_without_revisions_compares_against_empty():
    db = create_session()
    project = create_project(db)
    element_type = create_element_type(db, project, bom=[(100, 5)])
    create_element(db, element_type, bom_revision_id=None)

    record = get_element_type_with_updated_bom(db, 1, 7)

    assert adjustment_tuples(record) == [(100, 5, 0, 5)]
    assert record.elements[0].bom_revision_id is None


def test_latest_revision_mode_returns_none_for_unknown_element_type():
    db = create_session()
    create_project(db)

    assert get_element_type_with_updated_bom(db, 1, 999) is None


def test_merge_reports_only_products_from_either_side():
    current = [
        ElementTypeBOM(id=1, product_id=100, product_name="A", quantity=5),
        ElementTypeBOM(id=2, product_id=102, product_name="C", quantity=2),
    ]
    revision = [
        ElementTypeRevisionBOM(element_type_bom_id=1, product_id=100, product_name="A", quantity=7),
        ElementTypeRevisionBOM(element_type_bom_id=9, product_id=101, product_name="B", quantity=None),
        ElementTypeRevisionBOM(element_type_bom_id=8, product_id=103, product_name="D", quantity=4),
    ]

    adjustments = merge_required_adjustment(current, revision)

    products = {line.product_id for line in current} | {line.product_id for line in revision}
    assert {line.product_id for line in adjustments} <= products
    assert [(a.product_id, a.quantity, a.revision_quantity, a.quantity_change) for a in adjustments] == [
        (100, 5, 7, -2),
        (102, 2, 0, 2),
        (103, 0, 4, -4),
    ]
    for line in adjustments:
        assert line.quantity_change == line.quantity - line.revision_quantity
