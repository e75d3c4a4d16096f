from sqlalchemy import select

from sheetsync.api.schemas.imports import CanonicalField, MappingDecision, ScalarType
from sheetsync.db.models import SchemaProfile
from sheetsync.domain.imports.schema_profiles import (
    adopt_profile,
    build_adopted_fields,
    get_active_profile,
    infer_cold_start_fields,
    list_profiles,
    profile_fields,
)


def test_no_profile_means_no_fields(db_session):
    assert get_active_profile(db_session, "shipment") is None
    assert profile_fields(None) == []


def test_adopting_deactivates_previous_version_without_deleting_it(db_session):
    first = adopt_profile(db_session, "inventory", [CanonicalField(name="sku")])
    db_session.commit()
    second = adopt_profile(db_session, "inventory", [CanonicalField(name="vendor", aliases=["Vendor Name"])])
    db_session.commit()

    history = list_profiles(db_session, "inventory")

    assert [p.version for p in history] == [2, 1]
    assert [p.active for p in history] == [True, False]
    assert get_active_profile(db_session, "inventory").id == second.id
    assert db_session.get(SchemaProfile, first.id) is not None


def test_profiles_are_scoped_per_entity(db_session):
    adopt_profile(db_session, "inventory", [CanonicalField(name="sku")])
    adopt_profile(db_session, "order", [CanonicalField(name="order id")])
    db_session.commit()

    active = db_session.execute(select(SchemaProfile).where(SchemaProfile.active.is_(True))).scalars().all()

    assert sorted(p.entity for p in active) == ["inventory", "order"]
    assert all(p.version == 1 for p in active)


def test_profile_fields_round_trip(db_session):
    adopt_profile(db_session, "shipment", [
        CanonicalField(name="Ship Date", type=ScalarType.DATE, aliases=["etd"]),
    ])
    db_session.commit()

    [field] = profile_fields(get_active_profile(db_session, "shipment"))

    assert field == CanonicalField(name="ship date", type=ScalarType.DATE, aliases=["etd"])


def test_adopted_fields_from_explicit_mapping():
    mapping = [
        MappingDecision(incoming="Vendor Name", map_to="vendor"),
        MappingDecision(incoming="Notes", map_to=None),
    ]

    fields = build_adopted_fields(mapping, ["vendor name", "notes"])

    assert fields == [CanonicalField(name="vendor", type=ScalarType.STRING, aliases=["Vendor Name"])]


def test_adopted_fields_group_aliases_by_target():
    mapping = [
        MappingDecision(incoming="Qty", map_to="quantity"),
        MappingDecision(incoming="Units", map_to="Quantity"),
    ]

    [field] = build_adopted_fields(mapping, ["qty", "units"])

    assert field.name == "quantity"
    assert field.aliases == ["Qty", "Units"]


def test_adopted_fields_without_mapping_use_headers():
    fields = build_adopted_fields([], ["tracking number", "ship date", "tracking number"])

    assert [f.name for f in fields] == ["tracking number", "ship date"]
    assert all(f.type == ScalarType.STRING and f.aliases == [] for f in fields)


def test_cold_start_fields_are_inferred_from_the_file():
    rows = [
        {"tracking number": "1Z999", "pallets": 4, "ship date": "2024-05-01"},
        {"tracking number": "1Z998", "pallets": 2, "ship date": "2024-05-03"},
    ]

    fields = infer_cold_start_fields(["tracking number", "pallets", "ship date"], rows)

    assert [(f.name, f.type) for f in fields] == [
        ("tracking number", ScalarType.STRING),
        ("pallets", ScalarType.INTEGER),
        ("ship date", ScalarType.DATE),
    ]
