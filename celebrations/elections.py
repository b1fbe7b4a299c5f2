#####################################################################
#
# Election dates
#
# Primary and special election dates vary by state and aren't known
# until each state sets them, so we ask OpenFEC and record them on
# our Recipients. Regular general elections are fixed by statute and
# are computed in cycles.py instead.
#
#####################################################################

import logging

from django.conf import settings

from celebrations.cycles import to_date, InvalidDateError

logger = logging.getLogger(__name__)

PRIMARY = "P"
SPECIAL_GENERAL_TYPES = ("SG", "S") # SG is preferred when a state reports both

def fetch_election_dates(election_year):
	# Returns a dict mapping USPS state abbreviations to a dict with the
	# state's "primary" date and a dict of "special" general election
	# dates keyed by district number.
	import requests

	if not settings.FEC_API_KEY:
		logger.warning("No OpenFEC API key is configured. Election dates were not fetched.")
		return { }

	ret = { }
	page = 1
	while True:
		r = requests.get(
			"%s/election-dates/" % settings.FEC_API_BASE.rstrip("/"),
			params={
				"api_key": settings.FEC_API_KEY,
				"election_year": election_year,
				"per_page": 100,
				"page": page,
			},
			timeout=15)
		r.raise_for_status()
		data = r.json()

		for election in data.get("results", []):
			state = election.get("election_state")
			if not state:
				continue
			try:
				date = to_date(election.get("election_date"))
			except InvalidDateError:
				logger.warning("OpenFEC returned an unreadable election date: %r", election)
				continue
			if date.year != election_year:
				continue

			info = ret.setdefault(state, { "primary": None, "special": { } })
			election_type = election.get("election_type_id")
			if election_type == PRIMARY:
				# Some states hold more than one primary. The first one
				# closes the primary election.
				if info["primary"] is None or date < info["primary"]:
					info["primary"] = date
			elif election_type in SPECIAL_GENERAL_TYPES:
				district = normalize_district(election.get("election_district"))
				if district not in info["special"] or election_type == SPECIAL_GENERAL_TYPES[0]:
					info["special"][district] = date

		pagination = data.get("pagination", { })
		if page >= pagination.get("pages", 1):
			break
		page += 1

	return ret

def normalize_district(district):
	# OpenFEC gives districts as "05", "5" or "00" for at-large seats and Senate races.
	try:
		return int(district or 0)
	except ValueError:
		return 0

def recipient_district(recipient):
	# office_sought looks like H-TX-30 or S-VA-02 (the Senate class).
	parts = (recipient.office_sought or "").split("-")
	if len(parts) == 3 and parts[0] == "H":
		return normalize_district(parts[2])
	return 0

def apply_election_dates(dates, recipients=None):
	"""Updates the primary and special election dates of Recipients from
	the output of fetch_election_dates. Returns a dict describing what
	changed, keyed by recipient."""
	from celebrations.models import Recipient

	if recipients is None:
		recipients = Recipient.objects.filter(state__in=list(dates))

	changes = { }
	for recipient in recipients:
		info = dates.get(recipient.state)
		if not info:
			continue

		update = { }
		if info["primary"] and recipient.primary_date != info["primary"]:
			update["primary_date"] = info["primary"]
		special = info["special"].get(recipient_district(recipient))
		if special and recipient.general_date != special:
			update["general_date"] = special
		if not update:
			continue

		changes[str(recipient)] = {
			field: "%s => %s" % (getattr(recipient, field) or "none", value.isoformat())
			for field, value in update.items()
		}
		for field, value in update.items():
			setattr(recipient, field, value)
		recipient.save(update_fields=list(update) + ["updated"])
		logger.info("Election dates of %s updated: %s", recipient, changes[str(recipient)])

	return changes
