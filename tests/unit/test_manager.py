"""Tests for FederatedSheetManager: mapping compilation and the record pipeline."""

import copy

import pytest

from federate.config import FederateConfig
from federate.exceptions import ConfigValidationError
from federate.manager import FederatedSheetManager, LiveSheet
from federate.mapping import FieldMapping, MappingType, UnpivotMapping


def _record(**values):
    return {key: {"value": value} for key, value in values.items()}


def _platform(*records):
    return [{"id": f"rec_{i}", "values": values} for i, values in enumerate(records)]


def _config(*sheets, **extra):
    return {
        "source_workbook_name": "Company Data",
        "federated_workbook": {"name": "Federated Views", "sheets": list(sheets)},
        **extra,
    }


def _ref(key, source_slug, source_key):
    return {"key": key, "federate_config": {"source_sheet_slug": source_slug, "source_field_key": source_key}}


TOTALS = {
    "slug": "order_totals",
    "fields": [_ref("total", "orders", "amount")],
    "all_fields_required": ["total"],
}

CONTACTS = {
    "slug": "contacts",
    "fields": [{"key": "person"}, {"key": "role"}],
    "virtualFields": [_ref("company_id", "companies", "id")],
    "unpivot_groups": {
        "executives": {
            "source_sheet_slug": "companies",
            "field_mappings": [
                {"person": "ceo", "role": "<<CEO>>"},
                {"person": "cfo", "role": "<<CFO>>"},
            ],
        }
    },
}


class TestConstruction:
    def test_seeds_source_sheets(self):
        manager = FederatedSheetManager(_config(TOTALS, CONTACTS))
        assert manager.source_sheet_slugs == ["companies", "orders"]
        assert manager.has_source_sheet("orders")
        assert manager.has_source_sheet("companies")
        assert not manager.has_source_sheet("invoices")

    def test_accepts_model(self, orders_config):
        manager = FederatedSheetManager(FederateConfig.model_validate(orders_config))
        assert manager.source_sheet_slugs == ["orders"]

    def test_invalid_config_raises(self):
        with pytest.raises(ConfigValidationError, match="Duplicate sheet slug"):
            FederatedSheetManager(_config(TOTALS, TOTALS))

    def test_field_without_source_sheet_raises(self):
        sheet = {"slug": "s", "fields": [{"key": "a", "federate_config": {"source_field_key": "x"}}]}
        with pytest.raises(ConfigValidationError, match="must have a"):
            FederatedSheetManager(_config(sheet))


class TestCreateMappings:
    def test_standard_sheet_groups_fields_by_source(self):
        sheet = {
            "slug": "combined",
            "fields": [
                _ref("order_id", "orders", "id"),
                _ref("total", "orders", "amount"),
                _ref("customer", "customers", "name"),
                {"key": "note"},
            ],
            "virtualFields": [_ref("status", "orders", "status")],
        }
        manager = FederatedSheetManager(_config(sheet))

        manager.create_mappings(sheet, LiveSheet(id="us_sh_1", slug="combined"))

        (orders_mapping,) = manager.mappings_for("orders")
        assert isinstance(orders_mapping, FieldMapping)
        assert orders_mapping.type == MappingType.FIELD
        assert orders_mapping.sheet_id == "us_sh_1"
        assert orders_mapping.fields == {"id": ["order_id"], "amount": ["total"], "status": ["status"]}
        assert manager.mappings_for("customers")[0].fields == {"name": ["customer"]}

    def test_unpivot_sheet(self):
        manager = FederatedSheetManager(_config(CONTACTS))

        manager.create_mappings(CONTACTS, {"id": "us_sh_2", "slug": "contacts"})

        (mapping,) = manager.mappings_for("companies")
        assert isinstance(mapping, UnpivotMapping)
        assert [key for key, _ in mapping.unpivot_groups] == ["executives"]
        assert mapping.virtual_fields_map == {"id": ["company_id"]}

    def test_unpivot_groups_split_by_source(self):
        sheet = copy.deepcopy(CONTACTS)
        sheet["unpivot_groups"]["partners"] = {
            "source_sheet_slug": "partners",
            "field_mappings": [{"person": "contact", "role": "<<Partner>>"}],
        }
        manager = FederatedSheetManager(_config(sheet))

        manager.create_mappings(sheet, LiveSheet(id="us_sh_2", slug="contacts"))

        assert [k for k, _ in manager.mappings_for("companies")[0].unpivot_groups] == ["executives"]
        partners = manager.mappings_for("partners")[0]
        assert [k for k, _ in partners.unpivot_groups] == ["partners"]
        assert partners.virtual_fields_map == {}

    def test_unknown_source_is_added(self, tracer):
        manager = FederatedSheetManager(_config(TOTALS), tracer)
        blueprint = dict(TOTALS, fields=[_ref("total", "archive", "amount")])

        manager.create_mappings(blueprint, LiveSheet(id="us_sh_1", slug="order_totals"))

        assert manager.has_source_sheet("archive")

    def test_incomplete_virtual_field_is_skipped(self, tracer):
        manager = FederatedSheetManager(_config(TOTALS), tracer)
        blueprint = dict(TOTALS, virtualFields=[{"key": "loose"}])

        manager.create_mappings(blueprint, LiveSheet(id="us_sh_1", slug="order_totals"))

        assert manager.mappings_for("orders")[0].fields == {"amount": ["total"]}
        assert any("loose" in m for m in tracer.warning_messages("FederatedSheetManager"))

    def test_real_and_virtual_field_share_a_source_key(self):
        sheet = {
            "slug": "statuses",
            "fields": [_ref("status", "orders", "status")],
            "virtualFields": [_ref("status_v", "orders", "status")],
        }
        manager = FederatedSheetManager(_config(sheet))

        manager.create_mappings(sheet, LiveSheet(id="us_sh_1", slug="statuses"))
        manager.add_records("orders", _platform(_record(status="paid")))

        assert manager.mappings_for("orders")[0].fields == {"status": ["status", "status_v"]}
        assert manager.get_records() == {"us_sh_1": [_record(status="paid")]}

    def test_repeated_call_replaces_mappings(self, orders_config):
        blueprint = orders_config["federated_workbook"]["sheets"][0]
        manager = FederatedSheetManager(orders_config)
        live = LiveSheet(id="us_sh_1", slug="order_totals")

        manager.create_mappings(blueprint, live)
        manager.create_mappings(blueprint, live)
        manager.add_records("orders", _platform(_record(id="o1", amount=10, status="paid")))

        assert len(manager.mappings_for("orders")) == 1
        assert manager.get_records() == {"us_sh_1": [_record(order_id="o1", total=10)]}

    def test_repeated_call_drops_stale_dedupe_and_filters(self):
        deduped = dict(TOTALS, dedupe_config={"on": "total", "type": "delete", "keep": "first"})
        manager = FederatedSheetManager(_config(deduped))
        live = LiveSheet(id="us_sh_1", slug="order_totals")

        manager.create_mappings(deduped, live)
        manager.create_mappings({"slug": "order_totals", "fields": TOTALS["fields"]}, live)
        manager.add_records("orders", _platform(_record(amount=1), _record(amount=1)))

        assert manager.get_records() == {"us_sh_1": [_record(total=1), _record(total=1)]}

    def test_find_blueprint(self, tracer):
        manager = FederatedSheetManager(_config(TOTALS, CONTACTS), tracer)
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        assert manager.find_blueprint("us_sh_1").slug == "order_totals"
        assert manager.find_blueprint("us_sh_404") is None
        assert tracer.warning_messages() == ["Could not find slug for sheet id us_sh_404"]


class TestAddRecords:
    def test_unknown_source_is_ignored(self, tracer):
        manager = FederatedSheetManager(_config(TOTALS), tracer)
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records("invoices", _platform(_record(amount=1)))

        assert manager.get_records() == {"us_sh_1": []}

    def test_empty_batches_are_ignored(self):
        manager = FederatedSheetManager(_config(TOTALS))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records("orders", [])
        manager.add_records("orders", None)

        assert manager.get_records() == {"us_sh_1": []}

    def test_invalid_records_are_skipped(self, tracer):
        manager = FederatedSheetManager(_config(TOTALS), tracer)
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records("orders", [None, {"id": "x"}, *_platform(_record(amount=5))])

        assert manager.get_records() == {"us_sh_1": [_record(total=5)]}
        assert len(tracer.warning_messages()) == 2

    def test_record_objects_with_values_attribute(self):
        class PlatformRecord:
            def __init__(self, values):
                self.id = "rec"
                self.values = values

        manager = FederatedSheetManager(_config(TOTALS))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records("orders", [PlatformRecord(_record(amount=9))])

        assert manager.get_records() == {"us_sh_1": [_record(total=9)]}

    def test_order_across_batches(self):
        manager = FederatedSheetManager(_config(TOTALS))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records("orders", _platform(_record(amount=1), _record(amount=2)))
        manager.add_records("orders", _platform(_record(amount=3)))

        assert [r["total"]["value"] for r in manager.get_records()["us_sh_1"]] == [1, 2, 3]

    def test_one_source_feeds_several_sheets(self):
        big = dict(TOTALS, slug="big_orders", field_values_required={"total": [100]})
        manager = FederatedSheetManager(_config(TOTALS, big))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))
        manager.create_mappings(big, LiveSheet(id="us_sh_2", slug="big_orders"))

        manager.add_records("orders", _platform(_record(amount=100), _record(amount=5)))

        records = manager.get_records()
        assert [r["total"]["value"] for r in records["us_sh_1"]] == [100, 5]
        assert records["us_sh_2"] == [_record(total=100)]


class TestGetRecords:
    def test_no_records(self):
        manager = FederatedSheetManager(_config(TOTALS, CONTACTS))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        # contacts was never mapped and is omitted
        assert manager.get_records() == {"us_sh_1": []}

    def test_orders_scenario(self):
        manager = FederatedSheetManager(_config(TOTALS))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records(
            "orders",
            _platform(_record(amount=100, status="ok"), _record(status="missing amount")),
        )

        assert manager.get_records() == {"us_sh_1": [_record(total=100)]}

    def test_unpivot_with_virtual_fields(self):
        manager = FederatedSheetManager(_config(CONTACTS))
        manager.create_mappings(CONTACTS, LiveSheet(id="us_sh_2", slug="contacts"))

        manager.add_records("companies", _platform(_record(id="c1", ceo="Ann", cfo="Bo")))

        assert manager.get_records() == {
            "us_sh_2": [_record(person="Ann", role="CEO"), _record(person="Bo", role="CFO")]
        }

    def test_virtual_fields_drive_filter_then_disappear(self, orders_config):
        manager = FederatedSheetManager(orders_config)
        blueprint = orders_config["federated_workbook"]["sheets"][0]
        manager.create_mappings(blueprint, LiveSheet(id="us_sh_1", slug="order_totals"))

        manager.add_records(
            "orders",
            _platform(
                _record(id="o1", amount=10, status="paid"),
                _record(id="o2", amount=20, status="cancelled"),
                _record(id="o3", amount=30),
            ),
        )

        records = manager.get_records()["us_sh_1"]
        assert [r["order_id"]["value"] for r in records] == ["o1", "o3"]
        assert all("status" not in r for r in records)

    def test_dedupe_on_virtual_field(self):
        sheet = {
            "slug": "customers",
            "fields": [_ref("name", "orders", "customer_name")],
            "virtualFields": [_ref("customer_id", "orders", "customer_id")],
            "dedupe_config": {"on": "customer_id", "type": "delete", "keep": "first"},
        }
        manager = FederatedSheetManager(_config(sheet))
        manager.create_mappings(sheet, LiveSheet(id="us_sh_3", slug="customers"))

        manager.add_records(
            "orders",
            _platform(
                _record(customer_id="1", customer_name="Ada"),
                _record(customer_id="1", customer_name="Ada L."),
                _record(customer_id="2", customer_name="Bob"),
            ),
        )

        assert manager.get_records() == {"us_sh_3": [_record(name="Ada"), _record(name="Bob")]}

    def test_dedupe_runs_before_filter(self):
        sheet = {
            "slug": "latest",
            "fields": [_ref("key", "events", "key"), _ref("state", "events", "state")],
            "dedupe_config": {"on": "key", "type": "delete", "keep": "last"},
            "field_values_required": {"state": ["open"]},
        }
        manager = FederatedSheetManager(_config(sheet))
        manager.create_mappings(sheet, LiveSheet(id="us_sh_4", slug="latest"))

        manager.add_records(
            "events",
            _platform(_record(key="a", state="open"), _record(key="a", state="closed")),
        )

        # The last "a" wins the dedupe and is then filtered out
        assert manager.get_records() == {"us_sh_4": []}

    def test_output_records_are_copies(self, orders_config):
        manager = FederatedSheetManager(orders_config)
        blueprint = orders_config["federated_workbook"]["sheets"][0]
        manager.create_mappings(blueprint, LiveSheet(id="us_sh_1", slug="order_totals"))
        manager.add_records("orders", _platform(_record(id="o1", amount=1, status="paid")))

        first = manager.get_records()["us_sh_1"]
        first[0].clear()

        assert manager.get_records()["us_sh_1"] == [_record(order_id="o1", total=1)]


class TestClearMappings:
    def test_resets_state_but_keeps_sources(self):
        manager = FederatedSheetManager(_config(TOTALS))
        manager.create_mappings(TOTALS, LiveSheet(id="us_sh_1", slug="order_totals"))
        manager.add_records("orders", _platform(_record(amount=1)))

        manager.clear_mappings()

        assert manager.get_records() == {}
        assert manager.mappings_for("orders") == []
        assert manager.has_source_sheet("orders")

    def test_second_pass_reproduces_first(self, orders_config):
        manager = FederatedSheetManager(orders_config)
        blueprint = orders_config["federated_workbook"]["sheets"][0]
        records = _platform(
            _record(id="o1", amount=10, status="paid"),
            _record(id="o2", amount=20, status="cancelled"),
        )

        def run_pass():
            manager.clear_mappings()
            manager.create_mappings(blueprint, LiveSheet(id="us_sh_1", slug="order_totals"))
            manager.add_records("orders", records)
            return manager.get_records()

        assert run_pass() == run_pass()
