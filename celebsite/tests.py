from unittest import mock

from django.test import TestCase, SimpleTestCase, override_settings

from celebsite.models import Donor
from celebsite.utils import mergedicts
from celebrations.models import Recipient
from celebrations.tiers import ComplianceTier

class DonorTestCase(TestCase):
	def setUp(self):
		self.donor = Donor.objects.create(
			email="donor@example.com",
			first_name="Jane",
			last_name="Doe",
			address="1600 Main St",
			city="Dallas",
			state="TX",
			zip_code="75201",
			occupation="Teacher",
		)

	def test_name_and_address(self):
		self.assertEqual(self.donor.name, "Jane Doe")
		self.assertEqual(self.donor.get_address_string(), "1600 Main St, Dallas, TX, 75201")
		self.assertTrue(self.donor.has_domestic_address)
		self.donor.country = "Canada"
		self.assertFalse(self.donor.has_domestic_address)

	def test_compliance_tier_follows_fields(self):
		self.assertIs(self.donor.compliance_tier, ComplianceTier.Basic)

		self.donor.employer = "Dallas ISD"
		self.donor.save()
		self.assertIs(Donor.objects.get(id=self.donor.id).compliance_tier, ComplianceTier.Compliant)

		self.donor.zip_code = ""
		self.assertIs(self.donor.compliance_tier, ComplianceTier.Incomplete)

	def test_extra_round_trips_dates(self):
		import datetime
		self.donor.extra["seen"] = datetime.date(2026, 3, 1)
		self.donor.save()
		self.assertEqual(Donor.objects.get(id=self.donor.id).extra, { "seen": "2026-03-01" })

	@override_settings(CIVICS_API={
		"endpoint": "https://civics.example.com/divisionsByAddress",
		"key": "test-key",
		"district_pattern": r"^ocd-division/country:us/state:[a-z]{2}/cd:\d+$",
	})
	@mock.patch("requests.get")
	def test_geocode(self, get):
		rep = Recipient.objects.create(
			fec_id="H6TX30001",
			name="Candidate A",
			state="TX",
			office_sought="H-TX-30",
			ocd_id="ocd-division/country:us/state:tx/cd:30")
		Recipient.objects.create(
			fec_id="S6TX00001",
			name="Candidate B",
			state="TX",
			office_sought="S-TX-02",
			ocd_id="ocd-division/country:us/state:tx")

		get.return_value.json.return_value = {
			"normalizedInput": { "line1": "1600 Main St", "city": "Dallas", "state": "TX", "zip": "75201" },
			"divisions": {
				"ocd-division/country:us": { "name": "United States" },
				"ocd-division/country:us/state:tx": { "name": "Texas" },
				"ocd-division/country:us/state:tx/cd:30": { "name": "Texas's 30th congressional district" },
				"ocd-division/country:us/state:tx/county:dallas": { "name": "Dallas County" },
			},
		}

		info = self.donor.geocode()
		self.assertEqual(info["district_id"], "ocd-division/country:us/state:tx/cd:30")
		self.assertEqual(info["representative"], rep)
		self.assertEqual(get.call_args[1]["params"], { "address": "1600 Main St, Dallas, TX, 75201", "key": "test-key" })

		donor = Donor.objects.get(id=self.donor.id)
		self.assertEqual(donor.extra["district"], {
			"ocd_id": "ocd-division/country:us/state:tx/cd:30",
			"representative": rep.id,
		})

	@mock.patch("requests.get")
	def test_geocode_outside_any_district(self, get):
		get.return_value.json.return_value = { "divisions": { "ocd-division/country:us/state:dc": { } } }
		with self.assertRaises(ValueError):
			self.donor.geocode()
		self.assertNotIn("district", Donor.objects.get(id=self.donor.id).extra)

class UtilsTestCase(TestCase):
	def test_mergedicts(self):
		self.assertEqual(mergedicts({ "a": 1, "b": 2 }, { "b": 3 }, { }), { "a": 1, "b": 3 })

class ManageTestCase(SimpleTestCase):
	@mock.patch("django.core.mail.mail_admins")
	def test_command_failures_are_mailed(self, mail_admins):
		import manage
		logger = manage.mail_errors_to_admins()
		try:
			logger.error("Boom")
		finally:
			logger.handlers.clear()
			logger.propagate = True

		self.assertEqual(mail_admins.call_count, 1)
		subject, message = mail_admins.call_args[0]
		self.assertTrue(subject.endswith(": Boom"))
		self.assertEqual(message, "Boom")
		self.assertTrue(mail_admins.call_args[1]["fail_silently"])
