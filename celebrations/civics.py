import re, logging

from django.conf import settings

logger = logging.getLogger(__name__)

def resolve_district(address):
	# Looks up the congressional district containing an address using
	# the configured civics API (the Google Civic Information API's
	# divisionsByAddress method by default), then finds the Recipient
	# who represents it. Results aren't cached here.

	import requests
	from celebrations.models import Recipient

	r = requests.get(
		settings.CIVICS_API["endpoint"],
		params={
			"address": address,
			"key": settings.CIVICS_API["key"],
		},
		timeout=20)

	# Raise an exception for non-200 OK responses.
	r.raise_for_status()

	divisions = r.json().get("divisions", {})
	pattern = re.compile(settings.CIVICS_API["district_pattern"])
	districts = sorted(ocd_id for ocd_id in divisions if pattern.match(ocd_id))
	if not districts:
		raise ValueError("The address is not in a congressional district.")
	if len(districts) > 1:
		# Happens at district boundaries and with incomplete addresses.
		logger.warning("Address matched more than one congressional district: %s", ", ".join(districts))

	district_id = districts[0]
	return {
		"district_id": district_id,
		"representative": Recipient.objects.filter(ocd_id=district_id, office_sought__startswith="H-").first(),
	}
