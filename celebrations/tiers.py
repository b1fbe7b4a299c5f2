import enum

from django.conf import settings

@enum.unique
class ComplianceTier(enum.Enum):
	"""How completely a donor has disclosed the contributor information the FEC requires."""

	Incomplete = "incomplete"
	Basic = "basic"
	Compliant = "compliant"

	def rules(self):
		return settings.FEC_COMPLIANCE_TIERS[self.value]

	@property
	def ceiling(self):
		return self.rules()["ceiling"]

	@property
	def per_donation_limit(self):
		return self.rules()["per_donation"]

	@property
	def is_per_election(self):
		return self.rules()["reset"] == "election"

def _present(value):
	return bool(value and str(value).strip())

def missing_fields(donor):
	# Returns the names of the FEC-mandated fields that the donor
	# has not filled in.
	missing = []
	for field in ("first_name", "last_name", "address", "city", "zip_code"):
		if not _present(getattr(donor, field)):
			missing.append(field)

	if donor.has_domestic_address:
		if not _present(donor.state):
			missing.append("state")
	elif not _present(donor.passport):
		# A citizen living abroad identifies with a passport instead.
		missing.append("passport")

	if donor.is_employed and not _present(donor.occupation) and not _present(donor.employer):
		missing.append("occupation")
		missing.append("employer")

	return missing

def employment_reconciled(donor):
	if not donor.is_employed:
		return True
	return _present(donor.occupation) and _present(donor.employer)

def classify(donor):
	"""Derives the donor's ComplianceTier from the donor's current contributor information."""
	if missing_fields(donor):
		return ComplianceTier.Incomplete
	if not employment_reconciled(donor):
		return ComplianceTier.Basic
	return ComplianceTier.Compliant
