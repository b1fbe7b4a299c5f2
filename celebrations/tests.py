import datetime, os, tempfile
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.conf import settings
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, SimpleTestCase, override_settings
from django.utils import timezone

from celebsite.models import Donor
from celebrations.cycles import *
from celebrations.tiers import ComplianceTier, classify, missing_fields
from celebrations.limits import remaining_limit, remaining_tip_limit, validate_donation, UnresolvableRecipientError
from celebrations.models import *
from celebrations.lifecycle import *
from celebrations.sessions import *
from celebrations.elections import apply_election_dates
from celebrations.taskutils import exclusive_process, ProcessAlreadyRunning

def at(year, month, day, hour=12):
	# An aware datetime in the site's time zone.
	return timezone.make_aware(datetime.datetime(year, month, day, hour))

def make_donor(email="donor@example.com", **kwargs):
	fields = {
		"first_name": "Jane",
		"last_name": "Doe",
		"address": "1600 Main St",
		"city": "Dallas",
		"state": "TX",
		"zip_code": "75201",
		"is_employed": True,
		"occupation": "Teacher",
		"employer": "Dallas ISD",
	}
	fields.update(kwargs)
	return Donor.objects.create(email=email, **fields)

def make_recipient(fec_id="H6TX30001", **kwargs):
	fields = {
		"name": "Candidate A",
		"state": "TX",
		"office_sought": "H-TX-30",
		"ocd_id": "ocd-division/country:us/state:tx/cd:30",
	}
	fields.update(kwargs)
	return Recipient.objects.create(fec_id=fec_id, **fields)

def make_celebration(donor, recipient, amount, created, session="119-2", bill="hr1-119", status=CelebrationStatus.Active):
	return Celebration.objects.create(
		donated_by=donor,
		donee=recipient,
		donation_amount=Decimal(amount),
		created=created,
		congressional_session=session,
		bill_reference=bill,
		current_status=status,
	)

#####################################################################

class CycleTestCase(SimpleTestCase):
	def test_general_election_date(self):
		self.assertEqual(general_election_date(2020), datetime.date(2020, 11, 3))
		self.assertEqual(general_election_date(2022), datetime.date(2022, 11, 8)) # Nov 1 was a Tuesday
		self.assertEqual(general_election_date(2024), datetime.date(2024, 11, 5))
		self.assertEqual(general_election_date(2026), datetime.date(2026, 11, 3))
		self.assertEqual(general_election_date(2028), datetime.date(2028, 11, 7))

	def test_general_election_is_tuesday_after_first_monday(self):
		for year in range(1900, 2202, 2):
			d = general_election_date(year)
			self.assertEqual(d.weekday(), 1, year) # Tuesday
			self.assertTrue(2 <= d.day <= 8, year)
			self.assertEqual(d.month, 11)

	def test_general_election_rejects_bad_years(self):
		for year in (2025, "2024", 2024.0, None, True):
			with self.assertRaises(InvalidDateError):
				general_election_date(year)

	def test_current_campaign_cycle(self):
		c = current_campaign_cycle(datetime.date(2025, 6, 1))
		self.assertEqual(c, (datetime.date(2025, 1, 1), datetime.date(2026, 12, 31)))
		self.assertEqual(current_campaign_cycle(datetime.date(2026, 12, 31)), c)
		self.assertEqual(current_campaign_cycle("2026-03-01"), c)
		self.assertEqual(c.election_date, datetime.date(2026, 11, 3))
		self.assertIn(datetime.date(2025, 1, 1), c)
		self.assertNotIn(datetime.date(2027, 1, 1), c)

		d = datetime.date(1990, 1, 1)
		while d < datetime.date(2031, 1, 1):
			c = current_campaign_cycle(d)
			self.assertEqual(c.start.year % 2, 1)
			self.assertEqual(c.end.year, c.start.year + 1)
			self.assertIn(d, c)
			d += datetime.timedelta(days=17)

	def test_next_cycle_strings(self):
		self.assertEqual(next_cycle_start(datetime.date(2025, 3, 15)), "January 1, 2027")
		self.assertEqual(next_cycle_end(datetime.date(2025, 3, 15)), "December 31, 2028")
		self.assertEqual(next_cycle_start(datetime.date(2026, 12, 31)), "January 1, 2027")
		self.assertEqual(next_cycle_start_date(datetime.date(2025, 3, 15)), datetime.date(2027, 1, 1))

	def test_next_general_election(self):
		self.assertEqual(next_general_election(datetime.date(2025, 1, 1)), datetime.date(2026, 11, 3))
		self.assertEqual(next_general_election(datetime.date(2026, 11, 3)), datetime.date(2026, 11, 3))
		self.assertEqual(next_general_election(datetime.date(2026, 11, 4)), datetime.date(2028, 11, 7))

	def test_donations_before_election_are_within_cycle(self):
		now = datetime.date(2024, 11, 1)
		for d in (datetime.date(2023, 1, 1), datetime.date(2024, 6, 1), datetime.date(2024, 11, 4)):
			self.assertTrue(is_within_current_cycle(d, now=now))

	def test_election_day_donation_is_not_within_cycle(self):
		# Kept as-is: a donation made on election day itself is not
		# counted toward that election while the next one is ahead.
		self.assertFalse(is_within_current_cycle(datetime.date(2024, 11, 5), now=datetime.date(2024, 11, 5)))
		self.assertFalse(is_within_current_cycle(datetime.date(2024, 11, 5), now=datetime.date(2025, 6, 1)))
		self.assertFalse(is_within_current_cycle(datetime.date(2024, 12, 1), now=datetime.date(2026, 11, 3)))

		# Once the next election has passed, the negation flips it back.
		self.assertTrue(is_within_current_cycle(datetime.date(2024, 12, 1), now=datetime.date(2026, 11, 4)))

	def test_date_coercion(self):
		self.assertEqual(to_date("2026-03-01"), datetime.date(2026, 3, 1))
		self.assertEqual(to_date(datetime.datetime(2026, 3, 1, 23, 0)), datetime.date(2026, 3, 1))

		# 2am UTC is still the previous evening in Washington.
		self.assertEqual(to_date(datetime.datetime(2026, 3, 2, 2, 0, tzinfo=datetime.timezone.utc)), datetime.date(2026, 3, 1))

		self.assertEqual(to_date("2026-03-01T23:00:00"), datetime.date(2026, 3, 1))

		# Fragments are not filled in from today.
		for bad in ("xyz", "March", "Tuesday", "1/2", "12", "2026", "2026-03", "2026-02-30", 20260301, None, [2026, 3, 1]):
			with self.assertRaises(InvalidDateError):
				to_date(bad)
		with self.assertRaises(InvalidDateError):
			is_within_current_cycle("tomorrowish")

	def test_format_long_date(self):
		self.assertEqual(format_long_date(datetime.date(2027, 1, 1)), "January 1, 2027")

class ComplianceTierTestCase(SimpleTestCase):
	def donor(self, **kwargs):
		fields = {
			"first_name": "Jane", "last_name": "Doe",
			"address": "1600 Main St", "city": "Dallas", "state": "TX", "zip_code": "75201",
			"is_employed": True, "occupation": "Teacher", "employer": "Dallas ISD",
		}
		fields.update(kwargs)
		return Donor(email="x@example.com", **fields)

	def test_compliant(self):
		self.assertEqual(classify(self.donor()), ComplianceTier.Compliant)
		self.assertEqual(classify(self.donor(is_employed=False, occupation="", employer="")), ComplianceTier.Compliant)
		self.assertEqual(classify(self.donor(country="France", state="", passport="123456789")), ComplianceTier.Compliant)

	def test_basic(self):
		self.assertEqual(classify(self.donor(employer="")), ComplianceTier.Basic)
		self.assertEqual(classify(self.donor(occupation="")), ComplianceTier.Basic)

	def test_incomplete(self):
		self.assertEqual(classify(self.donor(occupation="", employer="")), ComplianceTier.Incomplete)
		self.assertEqual(classify(self.donor(zip_code="")), ComplianceTier.Incomplete)
		self.assertEqual(classify(self.donor(state="")), ComplianceTier.Incomplete)
		self.assertEqual(classify(self.donor(last_name="  ")), ComplianceTier.Incomplete)
		self.assertEqual(classify(self.donor(country="France", state="")), ComplianceTier.Incomplete)
		self.assertEqual(missing_fields(self.donor(city="", occupation="", employer="")), ["city", "occupation", "employer"])

	def test_classify_is_idempotent(self):
		d = self.donor(employer="")
		before = dict(d.__dict__)
		self.assertIs(classify(d), classify(d))
		self.assertIs(d.compliance_tier, ComplianceTier.Basic)
		self.assertEqual(d.__dict__, before)

	def test_tier_rules(self):
		self.assertEqual(ComplianceTier.Incomplete.ceiling, Decimal(50))
		self.assertEqual(ComplianceTier.Basic.ceiling, Decimal(200))
		self.assertEqual(ComplianceTier.Basic.per_donation_limit, Decimal(50))
		self.assertEqual(ComplianceTier.Compliant.ceiling, Decimal(3500))
		self.assertFalse(ComplianceTier.Basic.is_per_election)
		self.assertTrue(ComplianceTier.Compliant.is_per_election)

#####################################################################

COMPLIANT_3300 = dict(settings.FEC_COMPLIANCE_TIERS)
COMPLIANT_3300["compliant"] = { "ceiling": Decimal(3300), "per_donation": Decimal(3300), "reset": "election" }

class LimitTestCase(TestCase):
	def setUp(self):
		self.donor = make_donor()
		self.recipient = make_recipient()

	@override_settings(FEC_COMPLIANCE_TIERS=COMPLIANT_3300)
	def test_remaining_limit_end_to_end(self):
		make_celebration(self.donor, self.recipient, "1000", at(2026, 3, 1))
		make_celebration(self.donor, self.recipient, "1500", at(2026, 4, 1))

		limit = remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 6, 1))
		self.assertEqual(limit.remaining_limit, Decimal(800))
		self.assertIs(limit.tier, ComplianceTier.Compliant)
		self.assertEqual(limit.reset_date, datetime.date(2026, 11, 3))

	def test_remaining_limit_is_never_negative(self):
		donor = make_donor(email="incomplete@example.com", employer="", occupation="")
		make_celebration(donor, self.recipient, "500", at(2025, 5, 1))
		make_celebration(donor, self.recipient, "5000", at(2025, 6, 1))

		limit = remaining_limit(donor, self.recipient, at=datetime.date(2025, 7, 1))
		self.assertEqual(limit.remaining_limit, Decimal(0))
		self.assertIs(limit.tier, ComplianceTier.Incomplete)
		self.assertEqual(limit.reset_date, datetime.date(2027, 1, 1))

		make_celebration(self.donor, self.recipient, "9000", at(2026, 2, 1))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 3, 1)).remaining_limit, Decimal(0))

	def test_basic_tier_counts_whole_cycle(self):
		donor = make_donor(email="basic@example.com", employer="")
		make_celebration(donor, self.recipient, "50", at(2024, 12, 1)) # previous cycle
		make_celebration(donor, self.recipient, "50", at(2025, 2, 1))
		make_celebration(donor, self.recipient, "25", at(2026, 12, 1))
		self.assertEqual(remaining_limit(donor, self.recipient, at=datetime.date(2026, 12, 15)).remaining_limit, Decimal(125))

	def test_only_active_celebrations_count(self):
		make_celebration(self.donor, self.recipient, "1000", at(2026, 3, 1))
		c = make_celebration(self.donor, self.recipient, "2000", at(2026, 3, 2))
		c.pause("The seat no longer has a challenger.")
		make_celebration(self.donor, self.recipient, "400", at(2026, 3, 3), status=CelebrationStatus.Defunct)
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 4, 1)).remaining_limit, Decimal(2500))

	def test_other_recipients_dont_count(self):
		other = make_recipient(fec_id="H6TX32001", name="Candidate B", office_sought="H-TX-32")
		make_celebration(self.donor, other, "3000", at(2026, 3, 1))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 4, 1)).remaining_limit, Decimal(3500))

	def test_primary_and_general_are_separate_elections(self):
		self.recipient.primary_date = datetime.date(2026, 3, 3)
		self.recipient.save()
		make_celebration(self.donor, self.recipient, "3000", at(2026, 1, 15))

		limit = remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 2, 1))
		self.assertEqual(limit.remaining_limit, Decimal(500))
		self.assertEqual(limit.reset_date, datetime.date(2026, 3, 3))

		limit = remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 6, 1))
		self.assertEqual(limit.remaining_limit, Decimal(3500))
		self.assertEqual(limit.reset_date, datetime.date(2026, 11, 3))

	def test_after_the_general_counts_toward_the_next_election(self):
		make_celebration(self.donor, self.recipient, "3500", at(2026, 3, 1))

		# The 2026 general is over, so the limit is for 2028 now.
		limit = remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 12, 1))
		self.assertEqual(limit.remaining_limit, Decimal(3500))
		self.assertEqual(limit.reset_date, datetime.date(2028, 11, 7))

		for day in (10, 11, 12):
			make_celebration(self.donor, self.recipient, "3500", at(2026, 11, day))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 12, 1)).remaining_limit, Decimal(0))
		check = validate_donation(self.donor, self.recipient, 3500, at=datetime.date(2026, 12, 1))
		self.assertFalse(check.is_compliant)
		self.assertIn("November 7, 2028", check.reason)

		# They still count after the new cycle starts, up to the 2028 general.
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2027, 6, 1)).remaining_limit, Decimal(0))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2028, 11, 7)).remaining_limit, Decimal(3500))

	def test_earlier_elections_dont_count(self):
		make_celebration(self.donor, self.recipient, "3500", at(2026, 3, 1))

		limit = remaining_limit(self.donor, self.recipient, at=datetime.date(2027, 6, 1))
		self.assertEqual(limit.remaining_limit, Decimal(3500))
		self.assertEqual(limit.reset_date, datetime.date(2028, 11, 7))

		# A donation on election day counts toward the next election.
		make_celebration(self.donor, self.recipient, "1000", at(2026, 11, 3))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 11, 2)).remaining_limit, Decimal(0))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 11, 3)).remaining_limit, Decimal(2500))

	def test_primary_after_the_general(self):
		self.recipient.primary_date = datetime.date(2026, 3, 3)
		self.recipient.save()
		make_celebration(self.donor, self.recipient, "2000", at(2026, 1, 15)) # primary
		make_celebration(self.donor, self.recipient, "1000", at(2026, 6, 1)) # general
		make_celebration(self.donor, self.recipient, "500", at(2026, 11, 20)) # 2028

		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 3, 2)).remaining_limit, Decimal(1500))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 3, 3)).remaining_limit, Decimal(2500))
		self.assertEqual(remaining_limit(self.donor, self.recipient, at=datetime.date(2026, 12, 1)).remaining_limit, Decimal(3000))

	def test_unresolvable_recipient(self):
		for kwargs in ({ "state": None }, { "office_sought": None }, { "state": "" }):
			r = make_recipient(fec_id="X%d" % len(Recipient.objects.all()), **kwargs)
			with self.assertRaises(UnresolvableRecipientError):
				remaining_limit(self.donor, r)
			with self.assertRaises(UnresolvableRecipientError):
				validate_donation(self.donor, r, 10)

	def test_validate_donation(self):
		now = datetime.date(2026, 6, 1)
		check = validate_donation(self.donor, self.recipient, 100, at=now)
		self.assertTrue(check.is_compliant)
		self.assertIsNone(check.reason)

		self.assertFalse(validate_donation(self.donor, self.recipient, "0.50", at=now).is_compliant)
		self.assertFalse(validate_donation(self.donor, self.recipient, 3501, at=now).is_compliant)
		self.assertFalse(validate_donation(self.donor, self.recipient, 100, tip=-1, at=now).is_compliant)
		self.assertFalse(validate_donation(self.donor, self.recipient, 100, tip=5001, at=now).is_compliant)

		make_celebration(self.donor, self.recipient, "3400", at(2026, 3, 1))
		check = validate_donation(self.donor, self.recipient, 200, at=now)
		self.assertFalse(check.is_compliant)
		self.assertEqual(check.remaining_limit, Decimal(100))
		self.assertIn("November 3, 2026", check.reason)

		donor = make_donor(email="incomplete@example.com", zip_code="")
		check = validate_donation(donor, self.recipient, 60, at=now)
		self.assertFalse(check.is_compliant)
		self.assertIn("$50", check.reason)

	def test_remaining_tip_limit(self):
		c = make_celebration(self.donor, self.recipient, "10", at(2026, 3, 1))
		Celebration.objects.filter(id=c.id).update(tip_amount=Decimal(4000))
		c = make_celebration(self.donor, self.recipient, "10", at(2025, 3, 1))
		Celebration.objects.filter(id=c.id).update(tip_amount=Decimal(4000))
		self.assertEqual(remaining_tip_limit(self.donor, at=datetime.date(2026, 6, 1)), Decimal(1000))

class CreateCelebrationTestCase(TestCase):
	def setUp(self):
		self.recipient = make_recipient()

	def test_create(self):
		donor = make_donor()
		c = create_celebration(donor, self.recipient, Decimal(250), "hr1-119", tip=Decimal(5), now=at(2026, 3, 1))
		self.assertEqual(c.congressional_session, "119-2")
		self.assertEqual(c.current_status, CelebrationStatus.Active)
		self.assertEqual(c.extra["compliance_tier"], "compliant")
		self.assertEqual(c.ledger, ())

	def test_rejected(self):
		donor = make_donor(employer="", occupation="")
		create_celebration(donor, self.recipient, Decimal(50), "hr1-119", now=at(2025, 3, 1))
		with self.assertRaises(DonationRejected) as cm:
			create_celebration(donor, self.recipient, Decimal(10), "hr1-119", now=at(2025, 3, 2))
		self.assertFalse(cm.exception.check.is_compliant)
		self.assertEqual(Celebration.objects.count(), 1)

#####################################################################

class StateMachineTestCase(TestCase):
	def setUp(self):
		self.donor = make_donor()
		self.recipient = make_recipient()
		self.celebration = make_celebration(self.donor, self.recipient, "100", at(2026, 3, 1))

	def test_session_ended_makes_defunct_once(self):
		c = self.celebration
		stale_copy = Celebration.objects.get(id=c.id)

		entry = apply_triggers(c, [Trigger.SessionEnded], now=datetime.date(2027, 1, 4))
		self.assertEqual(c.current_status, CelebrationStatus.Defunct)
		self.assertEqual(entry.previous_status, CelebrationStatus.Active)
		self.assertEqual(entry.new_status, CelebrationStatus.Defunct)
		self.assertEqual(entry.triggered_by, TriggeredBy.CongressionalSession)
		self.assertEqual(entry.compliance_tier_at_time, "compliant")
		self.assertEqual(len(c.ledger), 1)

		with self.assertRaises(StaleTransitionError):
			apply_triggers(c, [Trigger.SessionEnded])
		with self.assertRaises(StaleTransitionError):
			apply_triggers(stale_copy, [Trigger.SessionEnded])

		c = Celebration.objects.get(id=c.id)
		self.assertEqual(c.current_status, CelebrationStatus.Defunct)
		self.assertEqual(len(c.ledger), 1)

	def test_race_has_one_winner(self):
		self.celebration.pause("The seat no longer has a challenger.")

		first = Celebration.objects.get(id=self.celebration.id)
		second = Celebration.objects.get(id=self.celebration.id)

		apply_triggers(first, [Trigger.ChallengerReappeared])
		with self.assertRaises(StaleTransitionError):
			apply_triggers(second, [Trigger.SessionEnded])

		c = Celebration.objects.get(id=self.celebration.id)
		self.assertEqual(c.current_status, CelebrationStatus.Active)
		self.assertEqual([(e.previous_status, e.new_status) for e in c.ledger], [
			("active", "paused"),
			("paused", "active"),
		])

	def test_retry_rereads_once(self):
		stale_copy = Celebration.objects.get(id=self.celebration.id)
		self.celebration.pause("The seat no longer has a challenger.")

		entry = transition_with_retry(stale_copy, [Trigger.SessionEnded])
		self.assertEqual(entry.previous_status, CelebrationStatus.Paused)
		self.assertEqual(entry.new_status, CelebrationStatus.Defunct)

		# No longer applicable after re-reading.
		other = make_celebration(self.donor, self.recipient, "5", at(2026, 3, 2))
		other_copy = Celebration.objects.get(id=other.id)
		other.resolve("The bill was enacted.")
		with self.assertRaises(StaleTransitionError):
			transition_with_retry(other_copy, [Trigger.ChallengerDisappeared])

	def test_precedence(self):
		entry = apply_triggers(self.celebration, [
			Trigger.ChallengerDisappeared,
			"bill_resolved",
			Trigger.SessionEnded,
		])
		self.assertEqual(entry.new_status, CelebrationStatus.Defunct)

		c = make_celebration(self.donor, self.recipient, "5", at(2026, 3, 2))
		entry = apply_triggers(c, [Trigger.ChallengerDisappeared, Trigger.BillResolved])
		self.assertEqual(entry.new_status, CelebrationStatus.Resolved)

		# Session end beats the challenger coming back.
		c = make_celebration(self.donor, self.recipient, "5", at(2026, 3, 3))
		c.pause("The seat no longer has a challenger.")
		entry = apply_triggers(c, [Trigger.ChallengerReappeared, Trigger.SessionEnded])
		self.assertEqual(entry.new_status, CelebrationStatus.Defunct)
		self.assertEqual(len(c.ledger), 2)

	def test_inapplicable_triggers_are_ignored(self):
		self.assertIsNone(apply_triggers(self.celebration, [Trigger.ChallengerReappeared]))
		self.assertIsNone(apply_triggers(self.celebration, []))
		self.assertEqual(self.celebration.ledger, ())

		self.celebration.pause("The seat no longer has a challenger.")
		self.assertIsNone(apply_triggers(self.celebration, [Trigger.BillResolved]))
		self.assertEqual(len(self.celebration.ledger), 1)

	def test_invalid_transition(self):
		self.celebration.pause("The seat no longer has a challenger.")
		with self.assertRaises(InvalidTransitionError):
			self.celebration.resolve("The bill was enacted.")
		with self.assertRaises(InvalidTransitionError):
			self.celebration.pause("Again.")
		self.assertEqual(len(self.celebration.ledger), 1)

	def test_ledger_replay(self):
		c = self.celebration
		self.assertEqual(c.derived_status(), CelebrationStatus.Active)
		c.pause("Paused.", triggered_by=TriggeredBy.Admin, metadata={ "note": "testing" })
		c.reactivate("Reactivated.")
		c.resolve("The bill was enacted.")

		c = Celebration.objects.get(id=c.id)
		self.assertEqual(c.derived_status(), c.current_status)
		self.assertIsInstance(c.ledger, tuple)
		self.assertEqual([e.new_status for e in c.ledger], ["paused", "active", "resolved"])
		self.assertEqual(c.ledger[0].metadata, { "note": "testing" })
		self.assertEqual(c.ledger[0].triggered_by, "admin")

	def test_ledger_is_immutable(self):
		entry = self.celebration.pause("Paused.")
		entry.reason = "Something else."
		with self.assertRaises(Exception):
			entry.save()
		with self.assertRaises(Exception):
			entry.delete()
		with self.assertRaises(ValueError):
			CelebrationStatusChange.objects.all().delete()
		self.assertEqual(CelebrationStatusChange.objects.get(id=entry.id).reason, "Paused.")

	def test_celebrations_are_never_deleted(self):
		with self.assertRaises(ValueError):
			self.celebration.delete()
		with self.assertRaises(ValueError):
			Celebration.objects.filter(id=self.celebration.id).delete()
		self.assertTrue(Celebration.objects.filter(id=self.celebration.id).exists())

	@mock.patch("celebrations.notifications.send_mail")
	def test_notification_after_commit(self, send_mail):
		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			apply_triggers(self.celebration, [Trigger.ChallengerDisappeared])
			self.assertEqual(send_mail.call_count, 0)
		self.assertEqual(len(callbacks), 1)
		self.assertEqual(send_mail.call_count, 1)
		template, from_email, to, context = send_mail.call_args[0]
		self.assertEqual(template, "celebrations/mail/challenger_disappeared")
		self.assertEqual(to, [self.donor.email])
		self.assertEqual(context["recipient"], self.recipient)

	@mock.patch("celebrations.notifications.send_mail", side_effect=OSError("mail server is down"))
	def test_failed_notification_keeps_transition(self, send_mail):
		with self.assertLogs("celebrations.notifications", level="ERROR"):
			with self.captureOnCommitCallbacks(execute=True):
				entry = apply_triggers(self.celebration, [Trigger.ChallengerDisappeared])
		self.assertEqual(send_mail.call_count, 1)

		c = Celebration.objects.get(id=self.celebration.id)
		self.assertEqual(c.current_status, CelebrationStatus.Paused)
		self.assertEqual(c.ledger, (entry,))

#####################################################################

class SessionTestCase(SimpleTestCase):
	def test_session_ordinals(self):
		self.assertEqual(current_congress(datetime.date(2025, 6, 1)), 119)
		self.assertEqual(current_session_number(datetime.date(2025, 6, 1)), 1)
		self.assertEqual(current_congress(datetime.date(2026, 12, 31)), 119)
		self.assertEqual(current_session_number(datetime.date(2026, 12, 31)), 2)
		self.assertEqual(current_congress(datetime.date(2027, 1, 3)), 120)

	def test_session_ordinal_on_january_1_and_2(self):
		# Kept as-is: the year alone decides. On January 1 and 2 of an
		# odd year the outgoing Congress is still sitting, but these
		# already report the new Congress's first session.
		for day in (1, 2):
			self.assertEqual(current_congress(datetime.date(2025, 1, day)), 119)
			self.assertEqual(current_session_number(datetime.date(2025, 1, day)), 1)
			self.assertEqual(current_session(datetime.date(2025, 1, day)).key, "119-1")

	def test_session_dates(self):
		s = get_session(119, 1)
		self.assertEqual(s.start, datetime.date(2025, 1, 3))
		self.assertEqual(s.end, datetime.date(2026, 1, 3))
		self.assertEqual(str(s), "119th Congress, 1st Session")
		self.assertEqual(str(get_session(121, 2)), "121st Congress, 2nd Session")
		self.assertFalse(s.has_ended(datetime.date(2026, 1, 2)))
		self.assertTrue(s.has_ended(datetime.date(2026, 1, 3)))

	def test_warning_period(self):
		s = get_session(119, 1)
		self.assertEqual(s.warning_starts(), datetime.date(2025, 12, 3))
		self.assertFalse(s.in_warning_period(datetime.date(2025, 12, 2)))
		self.assertTrue(s.in_warning_period(datetime.date(2025, 12, 3)))
		self.assertTrue(s.in_warning_period(datetime.date(2026, 1, 2)))
		self.assertFalse(s.in_warning_period(datetime.date(2026, 1, 3)))

	@override_settings(CONGRESS_SESSION_END_DATES={ "119-1": "2025-12-19" })
	def test_end_date_overrides(self):
		self.assertEqual(get_session(119, 1).end, datetime.date(2025, 12, 19))
		self.assertEqual(get_session(119, 1, end_dates={ }).end, datetime.date(2026, 1, 3))
		self.assertEqual(session_from_key("119-1").end, datetime.date(2025, 12, 19))

	def test_session_keys(self):
		self.assertEqual(session_from_key("119-2").start, datetime.date(2026, 1, 3))
		for bad in ("119-3", "119", "abc", "", None):
			with self.assertRaises(ValueError):
				session_from_key(bad)

	def test_session_info(self):
		info = session_info(datetime.date(2026, 12, 10))
		self.assertEqual(info["session_key"], "119-2")
		self.assertEqual(info["formatted_session_end_date"], "January 3, 2027")
		self.assertEqual(info["next_election_date"], datetime.date(2028, 11, 7))
		self.assertTrue(info["in_warning_period"])
		self.assertFalse(info["has_ended"])

	@override_settings(CONGRESS_GOV_API_KEY="test-key")
	@mock.patch("requests.get")
	def test_fetch_session_end_dates(self, get):
		get.return_value.json.return_value = {
			"congress": {
				"sessions": [
					{ "chamber": "House of Representatives", "number": 1, "startDate": "2023-01-03", "endDate": "2024-01-02" },
					{ "chamber": "Senate", "number": 1, "startDate": "2023-01-03", "endDate": "2024-01-03" },
					{ "chamber": "House of Representatives", "number": 2, "startDate": "2024-01-03" },
				]
			}
		}
		self.assertEqual(fetch_session_end_dates(118), { "118-1": "2024-01-03" })
		self.assertTrue(get.call_args[0][0].endswith("/congress/118"))
		self.assertEqual(get.call_args[1]["params"]["api_key"], "test-key")

	@override_settings(CONGRESS_GOV_API_KEY=None)
	@mock.patch("requests.get")
	def test_fetch_session_end_dates_without_key(self, get):
		self.assertEqual(fetch_session_end_dates(118), { })
		self.assertFalse(get.called)

#####################################################################

def election_dates_page(results, page, pages):
	return { "results": results, "pagination": { "page": page, "pages": pages } }

class ElectionDatesTestCase(TestCase):
	def setUp(self):
		self.house = make_recipient()
		self.senate = make_recipient(fec_id="S6TX00001", name="Candidate B", office_sought="S-TX-02", ocd_id="ocd-division/country:us/state:tx")
		self.virginia = make_recipient(fec_id="H6VA08001", name="Candidate C", state="VA", office_sought="H-VA-08", ocd_id="ocd-division/country:us/state:va/cd:8")

	def mock_api(self, get):
		get.return_value.json.side_effect = [
			election_dates_page([
				{ "election_state": "TX", "election_type_id": "P", "election_date": "2026-03-03", "election_district": "00" },
				{ "election_state": "TX", "election_type_id": "R", "election_date": "2026-05-26", "election_district": "00" },
				{ "election_state": "TX", "election_type_id": "SG", "election_date": "2026-06-13", "election_district": "30" },
			], 1, 2),
			election_dates_page([
				{ "election_state": "TX", "election_type_id": "P", "election_date": "2026-03-10", "election_district": "00" },
				{ "election_state": "TX", "election_type_id": "S", "election_date": "2026-05-02", "election_district": "30" },
				{ "election_state": "TX", "election_type_id": "P", "election_date": "soon", "election_district": "00" },
				{ "election_state": "VA", "election_type_id": "P", "election_date": "2025-06-17", "election_district": "08" },
			], 2, 2),
		]

	@override_settings(FEC_API_KEY="test-key")
	@mock.patch("requests.get")
	def test_update_election_dates(self, get):
		self.mock_api(get)
		out = StringIO()
		call_command("update_election_dates", year=2026, stdout=out)

		self.assertEqual(get.call_count, 2)
		self.assertTrue(get.call_args[0][0].endswith("/election-dates/"))
		self.assertEqual(get.call_args[1]["params"]["api_key"], "test-key")
		self.assertEqual(get.call_args[1]["params"]["election_year"], 2026)
		self.assertEqual(get.call_args[1]["params"]["page"], 2)

		# The earliest primary applies statewide. The special general
		# applies only to its district.
		house = Recipient.objects.get(id=self.house.id)
		self.assertEqual(house.primary_date, datetime.date(2026, 3, 3))
		self.assertEqual(house.general_date, datetime.date(2026, 6, 13))
		senate = Recipient.objects.get(id=self.senate.id)
		self.assertEqual(senate.primary_date, datetime.date(2026, 3, 3))
		self.assertIsNone(senate.general_date)
		virginia = Recipient.objects.get(id=self.virginia.id)
		self.assertIsNone(virginia.primary_date)

		self.assertIn("election_year: 2026", out.getvalue())
		self.assertIn("states: 1", out.getvalue())
		self.assertIn("primary_date: none => 2026-03-03", out.getvalue())

		# Nothing changes the second time around.
		self.mock_api(get)
		out = StringIO()
		call_command("update_election_dates", year=2026, stdout=out)
		self.assertIn("changed: {}", out.getvalue())

	@override_settings(FEC_API_KEY=None)
	@mock.patch("requests.get")
	def test_update_election_dates_without_key(self, get):
		out = StringIO()
		call_command("update_election_dates", year=2026, stdout=out)
		self.assertFalse(get.called)
		self.assertIn("states: 0", out.getvalue())

	def test_update_election_dates_rejects_odd_years(self):
		with self.assertRaises(CommandError):
			call_command("update_election_dates", year=2027, stdout=StringIO())

	def test_election_dates_split_the_limit(self):
		donor = make_donor()
		make_celebration(donor, self.house, "3000", at(2026, 2, 1))
		apply_election_dates({ "TX": { "primary": datetime.date(2026, 3, 3), "special": { } } })
		house = Recipient.objects.get(id=self.house.id)
		self.assertEqual(remaining_limit(donor, house, at=datetime.date(2026, 4, 1)).remaining_limit, Decimal(3500))
		self.assertEqual(remaining_limit(donor, house, at=datetime.date(2026, 2, 15)).remaining_limit, Decimal(500))

#####################################################################

@mock.patch("celebrations.notifications.send_mail")
class SweepTestCase(TestCase):
	def setUp(self):
		self.donor = make_donor()
		self.recipient = make_recipient()

	def test_sweep_defunct(self, send_mail):
		c1 = make_celebration(self.donor, self.recipient, "100", at(2025, 3, 1), session="119-1")
		c2 = make_celebration(self.donor, self.recipient, "200", at(2025, 4, 1), session="119-1", status=CelebrationStatus.Paused)
		c3 = make_celebration(self.donor, self.recipient, "300", at(2026, 3, 1), session="119-2")
		c4 = make_celebration(self.donor, self.recipient, "400", at(2025, 5, 1), session="119-1", status=CelebrationStatus.Resolved)

		with self.captureOnCommitCallbacks(execute=True):
			summary = sweep_defunct(now=datetime.date(2026, 1, 10))
		self.assertEqual(summary["defunct"], 2)
		self.assertEqual(summary["donors_notified"], 1)

		statuses = { c.id: c.current_status for c in Celebration.objects.all() }
		self.assertEqual(statuses, {
			c1.id: "defunct",
			c2.id: "defunct",
			c3.id: "active",
			c4.id: "resolved",
		})
		self.assertEqual(Celebration.objects.get(id=c2.id).ledger[0].metadata["session"], "119-1")

		# One email listing both.
		self.assertEqual(send_mail.call_count, 1)
		self.assertEqual(send_mail.call_args[0][0], "celebrations/mail/defunct_notification")
		self.assertEqual(send_mail.call_args[0][3]["total"], Decimal(300))

		# Running again does nothing.
		with self.captureOnCommitCallbacks(execute=True):
			summary = sweep_defunct(now=datetime.date(2026, 1, 11))
		self.assertEqual(summary["defunct"], 0)
		self.assertEqual(send_mail.call_count, 1)

	def test_defunct_warnings(self, send_mail):
		make_celebration(self.donor, self.recipient, "100", at(2025, 3, 1), session="119-1")
		make_celebration(self.donor, self.recipient, "100", at(2025, 3, 2), session="119-1")
		quiet = make_donor(email="quiet@example.com")
		make_celebration(quiet, self.recipient, "100", at(2025, 3, 1), session="119-1", status=CelebrationStatus.Resolved)

		self.assertEqual(send_defunct_warnings(now=datetime.date(2025, 11, 15))["warned"], 0)

		with self.captureOnCommitCallbacks(execute=True):
			self.assertEqual(send_defunct_warnings(now=datetime.date(2025, 12, 15))["warned"], 1)
		self.assertEqual(send_mail.call_count, 1)
		self.assertEqual(send_mail.call_args[0][2], [self.donor.email])
		self.assertEqual(len(send_mail.call_args[0][3]["celebrations"]), 2)

		# Only once per session.
		with self.captureOnCommitCallbacks(execute=True):
			self.assertEqual(send_defunct_warnings(now=datetime.date(2025, 12, 20))["warned"], 0)
		self.assertEqual(send_mail.call_count, 1)

	def test_update_challenger(self, send_mail):
		c1 = make_celebration(self.donor, self.recipient, "100", at(2026, 3, 1))
		c2 = make_celebration(self.donor, self.recipient, "100", at(2026, 3, 2))
		old = make_celebration(self.donor, self.recipient, "100", at(2025, 3, 1), session="119-1")

		with self.captureOnCommitCallbacks(execute=True):
			counts = update_challenger(self.recipient, False, now=datetime.date(2026, 6, 1))
		self.assertEqual(counts, { "paused": 2, "defunct": 1 })
		self.assertFalse(Recipient.objects.get(id=self.recipient.id).has_challenger)
		self.assertEqual(send_mail.call_count, 2)

		counts = update_challenger(self.recipient, True, now=datetime.date(2026, 6, 2))
		self.assertEqual(counts, { "active": 2 })
		self.assertEqual(Celebration.objects.get(id=c1.id).current_status, "active")
		self.assertEqual(Celebration.objects.get(id=old.id).current_status, "defunct")

	def test_resolve_bill(self, send_mail):
		c1 = make_celebration(self.donor, self.recipient, "100", at(2026, 3, 1), bill="hr1-119")
		c2 = make_celebration(self.donor, self.recipient, "100", at(2026, 3, 1), bill="hr2-119")
		c3 = make_celebration(self.donor, self.recipient, "100", at(2025, 3, 1), bill="hr1-119", session="119-1")

		with self.captureOnCommitCallbacks(execute=True):
			counts = resolve_bill("hr1-119", "H.R. 1 was signed into law.", now=datetime.date(2026, 6, 1))
		self.assertEqual(counts, { "resolved": 1, "defunct": 1 })

		c1 = Celebration.objects.get(id=c1.id)
		self.assertEqual(c1.current_status, "resolved")
		self.assertEqual(c1.ledger[0].reason, "H.R. 1 was signed into law.")
		self.assertEqual(c1.ledger[0].metadata["bill"], "hr1-119")
		self.assertEqual(Celebration.objects.get(id=c2.id).current_status, "active")
		self.assertEqual(Celebration.objects.get(id=c3.id).current_status, "defunct")

		self.assertEqual(send_mail.call_count, 1)
		self.assertEqual(send_mail.call_args[0][0], "celebrations/mail/celebration_resolved")

	def test_run_watchers_command(self, send_mail):
		make_celebration(self.donor, self.recipient, "100", at(2025, 3, 1), session="119-1")
		out = StringIO()
		with tempfile.TemporaryDirectory() as piddir:
			with mock.patch("celebrations.taskutils.get_pid_dir", return_value=piddir):
				call_command("run_watchers", date="2026-01-10", stdout=out)
		self.assertIn("key: 119-2", out.getvalue())
		self.assertIn("defunct: 1", out.getvalue())
		self.assertIn("warned: 0", out.getvalue())

	def test_resolve_bill_command(self, send_mail):
		make_celebration(self.donor, self.recipient, "100", timezone.now(), bill="hr1-119", session=current_session().key)
		out = StringIO()
		call_command("resolve_bill", "hr1-119", "Enacted.", stdout=out)
		self.assertIn("resolved: 1", out.getvalue())
		self.assertEqual(CelebrationStatusChange.objects.get().triggered_by, "admin")

class TaskUtilsTestCase(SimpleTestCase):
	def test_exclusive_process(self):
		with tempfile.TemporaryDirectory() as piddir:
			pidfile = exclusive_process("test-task", piddir=piddir)
			with open(pidfile) as f:
				self.assertEqual(f.read(), str(os.getpid()))

			# Our own pid doesn't block us.
			exclusive_process("test-task", piddir=piddir)

			# A live process does.
			with open(os.path.join(piddir, "other-task.pid"), "w") as f:
				f.write(str(os.getppid()))
			with self.assertRaises(ProcessAlreadyRunning):
				exclusive_process("other-task", piddir=piddir)

			# A garbage pid file is claimed.
			with open(os.path.join(piddir, "junk-task.pid"), "w") as f:
				f.write("not a pid")
			exclusive_process("junk-task", piddir=piddir)
