#####################################################################
#
# Contribution limits
#
# How much more a donor may give to a recipient, given the donor's
# compliance tier and the donations the donor has already made.
#
#####################################################################

import datetime, decimal
from collections import namedtuple

from django.conf import settings

from celebrations.cycles import to_date, today, current_campaign_cycle, next_cycle_start_date, format_long_date
from celebrations.tiers import classify

class UnresolvableRecipientError(ValueError):
	"""The recipient has no seat metadata, so we can't tell which election a donation is for."""
	pass

RemainingLimit = namedtuple("RemainingLimit", ["remaining_limit", "tier", "reset_date"])

DonationCheck = namedtuple("DonationCheck", ["is_compliant", "reason", "tier", "remaining_limit", "reset_date"])

def get_active_donations(donor, recipient=None):
	# Only active Celebrations hold on to headroom. Paused, resolved and
	# defunct ones are not counted. Read once so that the total is
	# computed from a single consistent snapshot.
	from celebrations.models import Celebration, CelebrationStatus
	qs = Celebration.objects.filter(donated_by=donor, current_status=CelebrationStatus.Active)
	if recipient is not None:
		qs = qs.filter(donee=recipient)
	return list(qs.only('id', 'created', 'donation_amount', 'tip_amount'))

def election_window(recipient, at):
	# The election a donation made on 'at' counts toward, as the half-open
	# range [opens, closes). A donation on election day itself already
	# counts toward the next election.
	cycle = current_campaign_cycle(at)
	cycles = (
		current_campaign_cycle(cycle.start - datetime.timedelta(days=1)),
		cycle,
		current_campaign_cycle(cycle.end + datetime.timedelta(days=1)),
	)

	boundaries = []
	for c in cycles:
		primary = recipient.get_primary_date(c)
		if primary:
			boundaries.append(primary)
		boundaries.append(recipient.get_general_election_date(c))
	boundaries.sort()

	# The previous cycle's general always precedes 'at' and the next
	# cycle's general always follows it.
	for opens, closes in zip(boundaries, boundaries[1:]):
		if opens <= at < closes:
			return opens, closes
	raise UnresolvableRecipientError("%s has no election around %s." % (recipient, at))

def remaining_limit(donor, recipient, at=None):
	if not recipient.has_resolvable_seat:
		raise UnresolvableRecipientError("%s has no state or office, so there is no election to count donations toward." % recipient)

	at = today(at)
	tier = classify(donor)
	donations = get_active_donations(donor, recipient)

	if not tier.is_per_election:
		# The limit applies to the whole two-year cycle.
		cycle = current_campaign_cycle(at)
		total = sum(
			(c.donation_amount for c in donations if c.created in cycle),
			decimal.Decimal(0))
		reset_date = next_cycle_start_date(at)

	else:
		# Each election (a primary or a general) has its own limit. After
		# the general, donations count toward the next election.
		opens, closes = election_window(recipient, at)
		total = sum(
			(c.donation_amount for c in donations if opens <= to_date(c.created) < closes),
			decimal.Decimal(0))
		reset_date = closes

	remaining = max(decimal.Decimal(0), tier.ceiling - total)
	return RemainingLimit(remaining, tier, reset_date)

def remaining_tip_limit(donor, at=None):
	# Tips are contributions to our PAC, which are limited per calendar year.
	year = today(at).year
	total = sum(
		(c.tip_amount for c in get_active_donations(donor) if to_date(c.created).year == year),
		decimal.Decimal(0))
	return max(decimal.Decimal(0), settings.FEC_PAC_ANNUAL_LIMIT - total)

def validate_donation(donor, recipient, amount, tip=0, at=None):
	"""Checks a proposed donation (and tip) against the donor's limits. Returns a
	DonationCheck whose reason, when the donation is not allowed, can be shown
	to the donor."""
	amount = decimal.Decimal(amount)
	tip = decimal.Decimal(tip)

	limit = remaining_limit(donor, recipient, at=at)
	tier = limit.tier

	def check(is_compliant, reason=None):
		return DonationCheck(is_compliant, reason, tier, limit.remaining_limit, limit.reset_date)

	if amount < settings.FEC_MINIMUM_DONATION:
		return check(False, "The minimum donation is $%s." % settings.FEC_MINIMUM_DONATION)
	if tip < 0:
		return check(False, "A tip cannot be negative.")
	if amount > tier.per_donation_limit:
		reason = "Each donation is limited to $%s." % tier.per_donation_limit
		if not tier.is_per_election:
			reason += " Complete your contributor information to give more."
		return check(False, reason)
	if amount > limit.remaining_limit:
		return check(False, "You can give at most $%s more to %s until %s." % (limit.remaining_limit, recipient.name, format_long_date(limit.reset_date)))
	if tip > 0 and tip > remaining_tip_limit(donor, at=at):
		return check(False, "Your tip would exceed the annual limit on contributions to our PAC.")
	return check(True)
