import datetime, logging

from django.db import models, transaction
from django.utils import timezone

from celebsite.utils import JSONField
from celebrations.cycles import general_election_date

logger = logging.getLogger(__name__)

#####################################################################
#
# Exceptions
#
#####################################################################

class StaleTransitionError(Exception):
	"""The Celebration was not in the status the caller expected, either because
	another process changed it first or because it is already in a final status."""
	def __init__(self, celebration, expected_status, new_status):
		self.celebration = celebration
		self.expected_status = expected_status
		self.new_status = new_status
		super(StaleTransitionError, self).__init__(
			"Celebration %s could not change from %s to %s. It was changed elsewhere or is final." % (celebration.id, expected_status, new_status))

class InvalidTransitionError(ValueError):
	pass

#####################################################################
#
# Recipients
#
#####################################################################

class Recipient(models.Model):
	"""A candidate for federal office who receives Celebrations."""

	fec_id = models.CharField(max_length=9, unique=True, help_text="The FEC candidate ID.")
	name = models.CharField(max_length=128, help_text="The candidate's name as it appears in notifications.")

	state = models.CharField(max_length=2, blank=True, null=True, help_text="USPS abbreviation of the state the candidate is running in.")
	office_sought = models.CharField(max_length=7, blank=True, null=True, help_text="A code for the seat the candidate is running for, e.g. H-TX-30 or S-VA-02.")
	ocd_id = models.CharField(max_length=96, blank=True, null=True, db_index=True, help_text="The Open Civic Data division ID of the candidate's district.")

	primary_date = models.DateField(blank=True, null=True, help_text="The date of the primary election for this seat in the current cycle, if known.")
	general_date = models.DateField(blank=True, null=True, help_text="The date of the general election for this seat when it is not the regular federal general election date (e.g. a special election).")

	has_challenger = models.BooleanField(default=True, help_text="Whether the seat is currently contested. Celebrations are paused while it is not.")

	created = models.DateTimeField(auto_now_add=True)
	updated = models.DateTimeField(auto_now=True)

	extra = JSONField(blank=True, default=dict, help_text="Additional information stored with this object.")

	def __str__(self):
		return "%s (%s)" % (self.name, self.office_sought or "no seat")

	@property
	def has_resolvable_seat(self):
		return bool(self.state and self.office_sought)

	def get_general_election_date(self, cycle):
		if self.general_date and self.general_date in cycle:
			return self.general_date
		return general_election_date(cycle.end.year)

	def get_primary_date(self, cycle):
		# Only a primary held in the same year as the general election
		# splits the cycle into two limits.
		general = self.get_general_election_date(cycle)
		if self.primary_date and self.primary_date.year == general.year and self.primary_date < general:
			return self.primary_date
		return None

#####################################################################
#
# Celebrations
#
#####################################################################

class CelebrationStatus(models.TextChoices):
	Active = "active", "Active"
	Paused = "paused", "Paused"
	Resolved = "resolved", "Resolved"
	Defunct = "defunct", "Defunct"

	@property
	def is_terminal(self):
		return self in (CelebrationStatus.Resolved, CelebrationStatus.Defunct)

VALID_TRANSITIONS = {
	CelebrationStatus.Active: (CelebrationStatus.Paused, CelebrationStatus.Resolved, CelebrationStatus.Defunct),
	CelebrationStatus.Paused: (CelebrationStatus.Active, CelebrationStatus.Defunct),
	CelebrationStatus.Resolved: (),
	CelebrationStatus.Defunct: (),
}

class TriggeredBy(models.TextChoices):
	System = "system", "System"
	Admin = "admin", "Admin"
	User = "user", "User"
	API = "api", "API"
	CongressionalSession = "congressional_session", "Congressional Session"

class NoDeleteManager(models.Manager):
	class CustomQuerySet(models.QuerySet):
		def delete(self):
			# Celebrations and their ledger entries are a permanent record.
			raise ValueError("%s objects cannot be deleted." % self.model.__name__)
	def get_queryset(self):
		return NoDeleteManager.CustomQuerySet(self.model, using=self._db)

class Celebration(models.Model):
	"""A donor's pledged donation to a recipient, held until a bill is resolved."""

	donated_by = models.ForeignKey('celebsite.Donor', related_name="celebrations", on_delete=models.PROTECT, help_text="The donor who made the Celebration.")
	donee = models.ForeignKey(Recipient, related_name="celebrations", on_delete=models.PROTECT, help_text="The candidate the donation goes to.")

	created = models.DateTimeField(default=timezone.now, db_index=True, help_text="The date and time of the donation. Limits are reckoned from this date.")
	updated = models.DateTimeField(auto_now=True)

	donation_amount = models.DecimalField(max_digits=8, decimal_places=2, help_text="The donation to the recipient, in dollars.")
	tip_amount = models.DecimalField(max_digits=8, decimal_places=2, default=0, help_text="An optional contribution to our PAC, in dollars.")

	current_status = models.CharField(max_length=10, choices=CelebrationStatus.choices, default=CelebrationStatus.Active, db_index=True, help_text="The current status of the Celebration. Always equal to the new_status of the last status change, or active if there are none.")

	bill_reference = models.CharField(max_length=32, db_index=True, help_text="The bill whose resolution the Celebration is waiting on, e.g. hr1234-119.")
	congressional_session = models.CharField(max_length=8, db_index=True, help_text="The session of Congress the Celebration was made in, e.g. 119-2. The Celebration becomes defunct when it ends.")

	extra = JSONField(blank=True, default=dict, help_text="Additional information stored with this object.")

	objects = NoDeleteManager()

	def __str__(self):
		return "[%s] $%s to %s (%s)" % (self.id, self.donation_amount, self.donee, self.current_status)

	def delete(self, *args, **kwargs):
		raise ValueError("Celebrations are never deleted. Mark them defunct instead.")

	@property
	def status(self):
		return CelebrationStatus(self.current_status)

	@property
	def ledger(self):
		return tuple(self.status_ledger.order_by('id'))

	def derived_status(self):
		# Replay the ledger. It must always agree with current_status.
		status = CelebrationStatus.Active
		for entry in self.ledger:
			if entry.previous_status != status:
				raise ValueError("Ledger of Celebration %s is out of sequence at entry %s." % (self.id, entry.id))
			status = CelebrationStatus(entry.new_status)
		return status

	def get_session(self, end_dates=None):
		from celebrations.sessions import session_from_key
		return session_from_key(self.congressional_session, end_dates=end_dates)

	@transaction.atomic
	def change_status(self, new_status, reason, triggered_by=TriggeredBy.System, metadata=None, now=None):
		new_status = CelebrationStatus(new_status)
		expected_status = CelebrationStatus(self.current_status)

		if expected_status.is_terminal:
			raise StaleTransitionError(self, expected_status, new_status)
		if new_status not in VALID_TRANSITIONS[expected_status]:
			raise InvalidTransitionError("A Celebration cannot change from %s to %s." % (expected_status, new_status))

		# "now" may be given as a date when reckoning sessions. The ledger
		# records the actual moment.
		when = now if isinstance(now, datetime.datetime) else timezone.now()

		# Update conditioned on the status we last read. If another process
		# got there first, nothing matches and we write nothing.
		matched = Celebration.objects\
			.filter(id=self.id, current_status=expected_status)\
			.update(current_status=new_status, updated=when)
		if matched == 0:
			raise StaleTransitionError(self, expected_status, new_status)

		entry = CelebrationStatusChange.objects.create(
			celebration=self,
			created=when,
			previous_status=expected_status,
			new_status=new_status,
			reason=reason,
			triggered_by=TriggeredBy(triggered_by),
			compliance_tier_at_time=self.donated_by.compliance_tier.value,
			metadata=metadata or { },
		)

		self.current_status = new_status
		self.updated = when

		logger.info("Celebration %s: %s => %s (%s)", self.id, expected_status, new_status, reason)
		return entry

	def pause(self, reason, **kwargs):
		return self.change_status(CelebrationStatus.Paused, reason, **kwargs)

	def reactivate(self, reason, **kwargs):
		return self.change_status(CelebrationStatus.Active, reason, **kwargs)

	def resolve(self, reason, **kwargs):
		return self.change_status(CelebrationStatus.Resolved, reason, **kwargs)

	def make_defunct(self, reason, **kwargs):
		return self.change_status(CelebrationStatus.Defunct, reason, **kwargs)

class CelebrationStatusChange(models.Model):
	"""An entry in a Celebration's status ledger. Immutable."""

	celebration = models.ForeignKey(Celebration, related_name="status_ledger", on_delete=models.PROTECT, help_text="The Celebration whose status changed.")
	created = models.DateTimeField(default=timezone.now, db_index=True, help_text="When the status changed.")

	previous_status = models.CharField(max_length=10, choices=CelebrationStatus.choices)
	new_status = models.CharField(max_length=10, choices=CelebrationStatus.choices)
	reason = models.TextField(help_text="A human-readable explanation of the change.")

	triggered_by = models.CharField(max_length=24, choices=TriggeredBy.choices, default=TriggeredBy.System, help_text="What caused the change.")
	compliance_tier_at_time = models.CharField(max_length=12, help_text="The donor's compliance tier when the status changed.")
	metadata = JSONField(blank=True, default=dict, help_text="Details of the change, such as the bill outcome or the session that ended.")

	objects = NoDeleteManager()

	class Meta:
		ordering = ['id']

	def __str__(self):
		return "%s: %s => %s" % (self.celebration_id, self.previous_status, self.new_status)

	def save(self, *args, **kwargs):
		if self.id: raise Exception("This model is immutable.")
		super(CelebrationStatusChange, self).save(*args, **kwargs)

	def delete(self, *args, **kwargs):
		raise Exception("This model is immutable.")
