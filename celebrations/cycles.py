#####################################################################
#
# Campaign cycles
#
# Date arithmetic for the two-year federal campaign cycle and the
# general election that closes it. Everything here is a pure function
# of its arguments. Callers may pass "now" explicitly so results can be
# pinned in time; otherwise the site's local date is used.
#
#####################################################################

import datetime, re
from collections import namedtuple

import dateutil.parser

from django.utils import timezone

class InvalidDateError(ValueError):
	"""A malformed or out-of-range date was given to a cycle computation."""
	pass

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}($|[T ])")

class CampaignCycle(namedtuple("CampaignCycle", ["start", "end"])):
	"""A campaign cycle, January 1 of an odd year through December 31 of the following year."""

	def __contains__(self, d):
		return self.start <= to_date(d) <= self.end

	@property
	def election_date(self):
		return general_election_date(self.end.year)

def to_date(value):
	# Coerce the input to a datetime.date. Aware datetimes are converted
	# to the local civil date first, so a late-evening donation in
	# Washington isn't counted on the next day's UTC date.
	if isinstance(value, datetime.datetime):
		if timezone.is_aware(value):
			value = timezone.localtime(value)
		return value.date()
	if isinstance(value, datetime.date):
		return value
	if isinstance(value, str):
		# Only full ISO 8601 dates, optionally with a time. A fragment like
		# "March" or "1/2" would otherwise be filled in from today.
		if not ISO_DATE.match(value):
			raise InvalidDateError("%r is not a YYYY-MM-DD date." % value)
		try:
			return to_date(dateutil.parser.isoparse(value))
		except (ValueError, OverflowError) as e:
			raise InvalidDateError("%r is not a valid date." % value) from e
	raise InvalidDateError("%r is not a date." % (value,))

def today(now=None):
	if now is None:
		return timezone.localdate()
	return to_date(now)

def general_election_date(year):
	# The first Tuesday after the first Monday in November. That Tuesday
	# always falls between November 2 and November 8.
	if isinstance(year, bool) or not isinstance(year, int):
		raise InvalidDateError("%r is not a year." % (year,))
	if year % 2 == 1:
		raise InvalidDateError("There are no federal general elections in odd years (%d)." % year)
	if year < 2 or year > datetime.MAXYEAR - 2:
		raise InvalidDateError("Year %d is out of range." % year)

	d = datetime.date(year, 11, 1)

	# Advance to the first Tuesday. Weekdays are counted from Sunday = 0.
	weekday = (d.weekday() + 1) % 7
	d += datetime.timedelta(days=(9 - weekday) % 7)

	# A Tuesday on the 1st doesn't follow the first Monday.
	if d.day == 1:
		d = d.replace(day=8)

	return d

def current_campaign_cycle(reference_date=None):
	year = today(reference_date).year
	if year % 2 == 1:
		start_year = year
	else:
		start_year = year - 1
	return CampaignCycle(
		datetime.date(start_year, 1, 1),
		datetime.date(start_year + 1, 12, 31))

def format_long_date(d):
	# e.g. "January 1, 2027"
	return "%s %d, %d" % (d.strftime("%B"), d.day, d.year)

def next_cycle_start(now=None):
	start = current_campaign_cycle(now).start
	return format_long_date(start.replace(year=start.year + 2))

def next_cycle_end(now=None):
	end = current_campaign_cycle(now).end
	return format_long_date(end.replace(year=end.year + 2))

def next_cycle_start_date(now=None):
	start = current_campaign_cycle(now).start
	return start.replace(year=start.year + 2)

def next_general_election(now=None):
	# The next general election on or after the given day.
	d = today(now)
	election = current_campaign_cycle(d).election_date
	if d > election:
		election = general_election_date(election.year + 2)
	return election

def is_within_current_cycle(donation_date, now=None):
	donation = to_date(donation_date)
	now = today(now)

	# A donation made before the election that closes its cycle counts
	# toward that election.
	election = current_campaign_cycle(donation).election_date
	if donation < election:
		return True

	# The donation was made on or after election day. Look at the next
	# cycle's election. The boundary behavior here is kept exactly as
	# it has always been: such a donation is not counted while the next
	# election is still ahead of us.
	next_election = general_election_date(election.year + 2)
	return not (donation < next_election and now <= next_election)
