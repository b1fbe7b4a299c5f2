#####################################################################
#
# Congressional sessions
#
# A Celebration is tied to the session of Congress in which it was
# made. When that session ends without the bill being resolved, the
# Celebration becomes defunct.
#
#####################################################################

import datetime, logging, re
from collections import namedtuple

from dateutil.relativedelta import relativedelta

from django.conf import settings

from celebrations.cycles import to_date, today, format_long_date, next_general_election, InvalidDateError

logger = logging.getLogger(__name__)

FIRST_CONGRESS_YEAR_OFFSET = 1787

class CongressionalSession(namedtuple("CongressionalSession", ["congress", "session", "start", "end"])):
	"""One annual session of a Congress. 'end' is the first day the session is no longer sitting."""

	@property
	def key(self):
		return "%d-%d" % (self.congress, self.session)

	def __str__(self):
		return "%s Congress, %s Session" % (ordinal(self.congress), ordinal(self.session))

	def has_ended(self, now=None):
		return today(now) >= self.end

	def warning_starts(self):
		return self.end - relativedelta(months=settings.DEFUNCT_WARNING_PERIOD_MONTHS)

	def in_warning_period(self, now=None):
		d = today(now)
		return self.warning_starts() <= d < self.end

def ordinal(n):
	if 10 <= n % 100 <= 20:
		suffix = "th"
	else:
		suffix = { 1: "st", 2: "nd", 3: "rd" }.get(n % 10, "th")
	return "%d%s" % (n, suffix)

def current_congress(now=None):
	# A new Congress is seated every odd year. This is reckoned by
	# calendar year alone, so January 1 and 2 of an odd year already
	# count as the new Congress even though it isn't seated until the 3rd.
	return (today(now).year - FIRST_CONGRESS_YEAR_OFFSET) // 2

def current_session_number(now=None):
	return 2 if today(now).year % 2 == 0 else 1

def get_session(congress, session, end_dates=None):
	if session not in (1, 2):
		raise ValueError("A Congress has two regular sessions, not %r." % (session,))
	year = FIRST_CONGRESS_YEAR_OFFSET + congress * 2 + (session - 1)

	# Sessions begin and, unless we know otherwise, end on January 3rd
	# as the Twentieth Amendment provides.
	start = datetime.date(year, 1, 3)
	end = datetime.date(year + 1, 1, 3)

	if end_dates is None:
		end_dates = settings.CONGRESS_SESSION_END_DATES
	key = "%d-%d" % (congress, session)
	if key in end_dates:
		end = to_date(end_dates[key])

	return CongressionalSession(congress, session, start, end)

def current_session(now=None, end_dates=None):
	return get_session(current_congress(now), current_session_number(now), end_dates=end_dates)

def session_from_key(key, end_dates=None):
	m = re.match(r"^(\d+)-([12])$", key or "")
	if not m:
		raise ValueError("%r is not a congressional session key, e.g. 119-1." % (key,))
	return get_session(int(m.group(1)), int(m.group(2)), end_dates=end_dates)

def session_info(now=None, end_dates=None):
	session = current_session(now, end_dates=end_dates)
	election = next_general_election(now)
	return {
		"session": session,
		"session_key": session.key,
		"session_end_date": session.end,
		"formatted_session_end_date": format_long_date(session.end),
		"next_election_date": election,
		"formatted_next_election_date": format_long_date(election),
		"has_ended": session.has_ended(now),
		"in_warning_period": session.in_warning_period(now),
	}

def fetch_session_end_dates(congress):
	# Ask the Congress.gov API when each session of a Congress adjourned.
	# Returns a dict mapping session keys to ISO dates, suitable for
	# passing as end_dates above. Sessions that are still sitting have
	# no end date and are left out.
	import requests

	if not settings.CONGRESS_GOV_API_KEY:
		return { }

	r = requests.get(
		"%s/congress/%d" % (settings.CONGRESS_GOV_API_BASE.rstrip("/"), congress),
		params={ "api_key": settings.CONGRESS_GOV_API_KEY, "format": "json" },
		timeout=10)
	r.raise_for_status()

	ret = { }
	for s in r.json().get("congress", {}).get("sessions", []):
		if not s.get("endDate"):
			continue
		try:
			end = to_date(s["endDate"])
		except InvalidDateError:
			logger.warning("Congress.gov returned an unreadable session end date: %r", s["endDate"])
			continue

		# The two chambers adjourn separately. The session is over
		# once both have.
		key = "%d-%d" % (congress, int(s["number"]))
		if key not in ret or end > to_date(ret[key]):
			ret[key] = end.isoformat()
	return ret
