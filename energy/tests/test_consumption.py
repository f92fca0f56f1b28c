from decimal import Decimal

from energy.application.consumption import price_consumption
from energy.domain.exceptions import InvalidInput
from energy.models import Appliance, ConsumptionRecord, Tariff
from energy.tests.base import ApiTestCase


class PriceConsumptionTest(ApiTestCase):
    def test_cost_uses_rounded_operands(self):
        kwh, price, cost = price_consumption(Decimal("12.3456"), Decimal("0.123456"))

        self.assertEqual(kwh, Decimal("12.346"))
        self.assertEqual(price, Decimal("0.1235"))
        self.assertEqual(cost, Decimal("1.5247"))

    def test_cost_example(self):
        _, _, cost = price_consumption(Decimal("3.5"), Decimal("4.32"))

        self.assertEqual(str(cost), "15.1200")

    def test_cost_beyond_column_is_rejected(self):
        with self.assertRaises(InvalidInput):
            price_consumption(Decimal("9999999"), Decimal("100"))


class ConsumptionEndpointTest(ApiTestCase):
    """
    Tests for /api/consumption

    Records are priced with the active tariff at write time and keep that
    price afterwards.
    """

    def setUp(self):
        super().setUp()
        self.tariff = self.make_tariff(price="0.2520")
        self.heater = Appliance.objects.create(
            owner=self.user, name="Heater", estimated_power=Decimal("2.000")
        )

    def test_record_with_kwh_is_priced(self):
        response = self.client.post("/api/consumption", {
            "consumption_kwh": "60",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["consumption_kwh"], "60.000")
        self.assertEqual(response.data["applied_price_per_kwh"], "0.2520")
        self.assertEqual(response.data["cost"], "15.1200")
        self.assertIsNone(response.data["appliance_id"])

    def test_record_from_usage_hours(self):
        response = self.client.post("/api/consumption", {
            "appliance_id": self.heater.id,
            "usage_hours": "1.5",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["consumption_kwh"], "3.000")
        self.assertEqual(response.data["cost"], "0.7560")
        self.assertEqual(response.data["appliance_id"], self.heater.id)

    def test_usage_hours_requires_appliance_power(self):
        lamp = Appliance.objects.create(owner=self.user, name="Lamp")

        response = self.client.post("/api/consumption", {
            "appliance_id": lamp.id,
            "usage_hours": "2",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(ConsumptionRecord.objects.count(), 0)

    def test_both_sources_are_rejected(self):
        response = self.client.post("/api/consumption", {
            "appliance_id": self.heater.id,
            "consumption_kwh": "1",
            "usage_hours": "1",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.data["message"], "Provide either consumption_kwh or usage_hours, not both"
        )

    def test_missing_source_is_rejected(self):
        response = self.client.post("/api/consumption", {"record_date": "2025-01-05"})

        self.assertEqual(response.status_code, 400)

    def test_non_positive_kwh_is_rejected(self):
        response = self.client.post("/api/consumption", {
            "consumption_kwh": "-1",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(ConsumptionRecord.objects.count(), 0)

    def test_invalid_record_date_is_rejected(self):
        response = self.client.post("/api/consumption", {
            "consumption_kwh": "1",
            "record_date": "05/01/2025",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "record_date must be YYYY-MM-DD")

    def test_no_active_tariff_is_rejected(self):
        Tariff.objects.filter(owner=self.user).update(is_active=False)

        response = self.client.post("/api/consumption", {
            "consumption_kwh": "1",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.data["message"],
            "No active tariff. Please create a tariff and set it as active.",
        )

    def test_multiple_active_tariffs_conflict(self):
        extra = self.make_tariff(price="0.3000", is_active=False)
        Tariff.objects.filter(pk=extra.pk).update(is_active=True)

        response = self.client.post("/api/consumption", {
            "consumption_kwh": "1",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 409)
        self.assertEqual(
            sorted(response.data["active_tariff_ids"]), sorted([self.tariff.id, extra.id])
        )
        self.assertEqual(ConsumptionRecord.objects.count(), 0)

    def test_foreign_appliance_is_not_found(self):
        stranger = self.make_user("stranger@example.com")
        foreign = Appliance.objects.create(owner=stranger, name="Oven", estimated_power=Decimal("1"))

        response = self.client.post("/api/consumption", {
            "appliance_id": foreign.id,
            "consumption_kwh": "1",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 404)

    def test_price_snapshot_survives_tariff_change(self):
        created = self.client.post("/api/consumption", {
            "consumption_kwh": "10",
            "record_date": "2025-01-05",
        })
        Tariff.objects.filter(pk=self.tariff.pk).update(price_per_kwh=Decimal("0.9000"))

        record = ConsumptionRecord.objects.get(pk=created.data["id"])
        self.assertEqual(record.applied_price_per_kwh, Decimal("0.2520"))
        self.assertEqual(record.cost, Decimal("2.5200"))

    def test_update_reprices_with_current_tariff(self):
        created = self.client.post("/api/consumption", {
            "consumption_kwh": "10",
            "record_date": "2025-01-05",
        })
        self.make_tariff(price="0.5000", name="Night")
        Tariff.objects.filter(pk=self.tariff.pk).update(is_active=False)

        response = self.client.patch(f"/api/consumption/{created.data['id']}", {"notes": "checked"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["applied_price_per_kwh"], "0.5000")
        self.assertEqual(response.data["cost"], "5.0000")
        self.assertEqual(response.data["notes"], "checked")

    def test_update_can_detach_appliance(self):
        created = self.client.post("/api/consumption", {
            "appliance_id": self.heater.id,
            "consumption_kwh": "1",
            "record_date": "2025-01-05",
        })

        response = self.client.patch(
            f"/api/consumption/{created.data['id']}", {"appliance_id": None}
        )

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.data["appliance_id"])

    def test_deleting_appliance_keeps_records(self):
        created = self.client.post("/api/consumption", {
            "appliance_id": self.heater.id,
            "consumption_kwh": "1",
            "record_date": "2025-01-05",
        })

        self.assertEqual(self.client.delete(f"/api/appliances/{self.heater.id}").status_code, 204)

        record = ConsumptionRecord.objects.get(pk=created.data["id"])
        self.assertIsNone(record.appliance_id)

    def test_list_filters_by_date(self):
        for day in ("2025-01-01", "2025-01-15", "2025-02-01"):
            self.client.post("/api/consumption", {"consumption_kwh": "1", "record_date": day})

        response = self.client.get(
            "/api/consumption", {"date_from": "2025-01-01", "date_to": "2025-01-31"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["record_date"] for row in response.data], ["2025-01-15", "2025-01-01"])

    def test_delete_record(self):
        created = self.client.post("/api/consumption", {
            "consumption_kwh": "1",
            "record_date": "2025-01-05",
        })

        response = self.client.delete(f"/api/consumption/{created.data['id']}")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(ConsumptionRecord.objects.count(), 0)

    def test_cost_overflow_is_rejected(self):
        Tariff.objects.filter(pk=self.tariff.pk).update(price_per_kwh=Decimal("100.0000"))

        response = self.client.post("/api/consumption", {
            "consumption_kwh": "9999999",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 400)
        self.assertIn("cost must not exceed", response.data["message"])
        self.assertEqual(ConsumptionRecord.objects.count(), 0)

    def test_kwh_wider_than_column_is_rejected(self):
        response = self.client.post("/api/consumption", {
            "consumption_kwh": "123456789",
            "record_date": "2025-01-05",
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(ConsumptionRecord.objects.count(), 0)


class ApplianceEndpointTest(ApiTestCase):
    def test_create_and_update_appliance(self):
        created = self.client.post("/api/appliances", {"name": "Kettle", "estimated_power": "2.2"})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["estimated_power"], "2.200")

        response = self.client.patch(f"/api/appliances/{created.data['id']}", {"name": "Big kettle"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["name"], "Big kettle")
        self.assertEqual(response.data["estimated_power"], "2.200")

    def test_appliances_are_scoped_to_owner(self):
        stranger = self.make_user("stranger@example.com")
        foreign = Appliance.objects.create(owner=stranger, name="Oven")

        self.assertEqual(self.client.get("/api/appliances").data, [])
        self.assertEqual(
            self.client.patch(f"/api/appliances/{foreign.id}", {"name": "Mine"}).status_code, 404
        )
