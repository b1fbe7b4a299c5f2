from django.db import models

from celebsite.utils import JSONField

#####################################################################
#
# Donors
#
# The account record of a person who pledges contributions. Account
# management happens elsewhere; the compliance engine only reads the
# disclosure fields below.
#
#####################################################################

class Donor(models.Model):
	"""A person who makes Celebrations, with the contributor information the FEC requires us to collect."""

	email = models.EmailField(max_length=254, unique=True, help_text="The donor's email address, where notifications are sent.")

	created = models.DateTimeField(auto_now_add=True, db_index=True)
	updated = models.DateTimeField(auto_now=True, db_index=True)

	first_name = models.CharField(max_length=64, blank=True, default="")
	last_name = models.CharField(max_length=64, blank=True, default="")

	address = models.CharField(max_length=128, blank=True, default="", help_text="Street address.")
	city = models.CharField(max_length=64, blank=True, default="")
	state = models.CharField(max_length=2, blank=True, default="", help_text="USPS state abbreviation. Not required for addresses outside the United States.")
	zip_code = models.CharField(max_length=10, blank=True, default="")
	country = models.CharField(max_length=64, default="United States")
	passport = models.CharField(max_length=32, blank=True, default="", help_text="U.S. passport number, required of citizens living abroad in lieu of a U.S. address.")

	is_employed = models.BooleanField(default=True)
	occupation = models.CharField(max_length=64, blank=True, default="")
	employer = models.CharField(max_length=64, blank=True, default="")

	extra = JSONField(blank=True, default=dict, help_text="Additional information stored with this object, such as geocoding results.")

	def __str__(self):
		return self.email

	@property
	def name(self):
		return ' '.join(n for n in (self.first_name, self.last_name) if n)

	@property
	def has_domestic_address(self):
		return self.country.strip().lower() in ("", "united states", "us", "usa")

	@property
	def compliance_tier(self):
		# Always derived from the current field values, never stored.
		from celebrations.tiers import classify
		return classify(self)

	def get_address_string(self):
		return ', '.join(p for p in (self.address, self.city, self.state, self.zip_code) if p)

	def geocode(self):
		# Looks up the donor's congressional district and stores it.
		from celebrations.civics import resolve_district
		info = resolve_district(self.get_address_string())
		self.extra['district'] = {
			"ocd_id": info["district_id"],
			"representative": info["representative"].id if info["representative"] else None,
		}
		self.save(update_fields=['extra'])
		return info
