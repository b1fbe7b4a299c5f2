#####################################################################
#
# Celebration lifecycle
#
# Turns outside events (a seat losing or regaining its challenger, a
# bill being resolved, a session of Congress ending) into status
# changes on Celebrations, and runs the periodic sweeps.
#
#####################################################################

import enum, logging
from collections import defaultdict, OrderedDict

from django.db import transaction
from django.utils import timezone

from celebrations.models import Celebration, CelebrationStatus, TriggeredBy, StaleTransitionError
from celebrations.limits import validate_donation
from celebrations.sessions import current_session
from celebrations.notifications import notify_on_commit, notify_status_change

logger = logging.getLogger(__name__)

class DonationRejected(ValueError):
	def __init__(self, check):
		self.check = check
		super(DonationRejected, self).__init__(check.reason)

class Trigger(enum.Enum):
	# Listed in order of precedence. When more than one arrives in the
	# same pass, the first one listed here wins.
	SessionEnded = "session_ended"
	BillResolved = "bill_resolved"
	ChallengerDisappeared = "challenger_disappeared"
	ChallengerReappeared = "challenger_reappeared"

	@property
	def precedence(self):
		return list(Trigger).index(self)

	@property
	def transition(self):
		# (statuses it applies to, status it moves to)
		return {
			Trigger.SessionEnded: ((CelebrationStatus.Active, CelebrationStatus.Paused), CelebrationStatus.Defunct),
			Trigger.BillResolved: ((CelebrationStatus.Active,), CelebrationStatus.Resolved),
			Trigger.ChallengerDisappeared: ((CelebrationStatus.Active,), CelebrationStatus.Paused),
			Trigger.ChallengerReappeared: ((CelebrationStatus.Paused,), CelebrationStatus.Active),
		}[self]

	def applies_to(self, status):
		return CelebrationStatus(status) in self.transition[0]

	@property
	def default_reason(self):
		return {
			Trigger.SessionEnded: "The session of Congress ended before the bill was resolved.",
			Trigger.BillResolved: "The bill was resolved.",
			Trigger.ChallengerDisappeared: "The seat no longer has a challenger.",
			Trigger.ChallengerReappeared: "The seat has a challenger again.",
		}[self]

	@property
	def triggered_by(self):
		if self == Trigger.SessionEnded:
			return TriggeredBy.CongressionalSession
		return TriggeredBy.System

def apply_triggers(celebration, triggers, now=None, reason=None, triggered_by=None, metadata=None):
	"""Runs one evaluation pass over a Celebration. Of the triggers given,
	only the highest-precedence one that applies to the Celebration's
	current status fires. Returns the new ledger entry, or None if no
	trigger applied. Raises StaleTransitionError if the Celebration is
	already resolved or defunct, or was changed by someone else first."""

	triggers = sorted(set(Trigger(t) for t in triggers), key=lambda t : t.precedence)
	if not triggers:
		return None

	if celebration.status.is_terminal:
		# Nothing can happen to it anymore. change_status will say so.
		fire = triggers[0]
	else:
		applicable = [t for t in triggers if t.applies_to(celebration.status)]
		if not applicable:
			return None
		fire = applicable[0]

	details = { "trigger": fire.value }
	details.update(metadata or { })

	entry = celebration.change_status(
		fire.transition[1],
		reason or fire.default_reason,
		triggered_by=triggered_by or fire.triggered_by,
		metadata=details,
		now=now)

	notify_status_change(celebration, entry)
	return entry

def transition_with_retry(celebration, triggers, **kwargs):
	# If another process changed the Celebration between when we read it
	# and when we tried to update it, re-read it and try once more.
	try:
		return apply_triggers(celebration, triggers, **kwargs)
	except StaleTransitionError as e:
		fresh = Celebration.objects.get(id=celebration.id)
		if fresh.status.is_terminal or not any(Trigger(t).applies_to(fresh.status) for t in triggers):
			raise e
		logger.info("Celebration %s changed underneath us, retrying.", celebration.id)
		return apply_triggers(fresh, triggers, **kwargs)

def _session_triggers(celebration, now, end_dates=None):
	session = celebration.get_session(end_dates=end_dates)
	if session.has_ended(now):
		return [Trigger.SessionEnded], { "session": session.key, "session_end_date": session.end.isoformat() }
	return [], { }

def _identity(iterable):
	return iterable

#####################################################################
#
# Creating Celebrations
#
#####################################################################

@transaction.atomic
def create_celebration(donor, recipient, amount, bill_reference, tip=0, now=None):
	from celebsite.models import Donor

	# Lock the donor so that two simultaneous donations can't both fit
	# under the same remaining limit.
	donor = Donor.objects.select_for_update().get(id=donor.id)

	now = now or timezone.now()
	check = validate_donation(donor, recipient, amount, tip=tip, at=now)
	if not check.is_compliant:
		raise DonationRejected(check)

	celebration = Celebration.objects.create(
		donated_by=donor,
		donee=recipient,
		created=now,
		donation_amount=amount,
		tip_amount=tip,
		bill_reference=bill_reference,
		congressional_session=current_session(now).key,
		extra={ "compliance_tier": check.tier.value },
	)
	logger.info("Celebration %s created: $%s to %s.", celebration.id, amount, recipient)
	return celebration

#####################################################################
#
# Events
#
#####################################################################

def update_challenger(recipient, has_challenger, now=None, progress=_identity):
	"""Records whether a recipient's seat is contested and pauses or reactivates
	the recipient's Celebrations. Celebrations whose session has ended become
	defunct instead."""

	from celebrations.models import Recipient
	Recipient.objects.filter(id=recipient.id).update(has_challenger=has_challenger)
	recipient.has_challenger = has_challenger

	trigger = Trigger.ChallengerReappeared if has_challenger else Trigger.ChallengerDisappeared
	qs = recipient.celebrations\
		.filter(current_status__in=(CelebrationStatus.Active, CelebrationStatus.Paused))\
		.select_related('donated_by', 'donee')\
		.order_by('id')

	return _run_pass(qs, [trigger], now, progress, { "recipient": recipient.fec_id })

def resolve_bill(bill_reference, reason, now=None, triggered_by=TriggeredBy.System, progress=_identity):
	"""Resolves the Celebrations waiting on a bill, except those whose session
	has already ended, which become defunct."""

	qs = Celebration.objects\
		.filter(bill_reference=bill_reference, current_status__in=(CelebrationStatus.Active, CelebrationStatus.Paused))\
		.select_related('donated_by', 'donee')\
		.order_by('id')

	return _run_pass(qs, [Trigger.BillResolved], now, progress, { "bill": bill_reference }, reason=reason, triggered_by=triggered_by)

def _run_pass(qs, triggers, now, progress, metadata, reason=None, triggered_by=None):
	counts = OrderedDict()
	for celebration in progress(list(qs)):
		session_triggers, session_metadata = _session_triggers(celebration, now)
		md = dict(metadata)
		md.update(session_metadata)

		# A session end always speaks for itself.
		kwargs = { }
		if not session_triggers:
			kwargs = { "reason": reason, "triggered_by": triggered_by }

		try:
			entry = transition_with_retry(celebration, triggers + session_triggers, now=now, metadata=md, **kwargs)
		except StaleTransitionError as e:
			logger.info(str(e))
			outcome = "stale"
		else:
			outcome = CelebrationStatus(entry.new_status).value if entry else "unchanged"
		counts[outcome] = counts.get(outcome, 0) + 1
	return counts

#####################################################################
#
# Sweeps
#
#####################################################################

def sweep_defunct(now=None, end_dates=None, progress=_identity):
	"""Makes defunct every open Celebration whose session of Congress has
	ended, then emails each affected donor once."""

	qs = Celebration.objects\
		.filter(current_status__in=(CelebrationStatus.Active, CelebrationStatus.Paused))\
		.select_related('donated_by', 'donee')\
		.order_by('id')

	defunct = defaultdict(list)
	stale = 0
	for celebration in progress(list(qs)):
		triggers, metadata = _session_triggers(celebration, now, end_dates=end_dates)
		if not triggers:
			continue
		try:
			transition_with_retry(celebration, triggers, now=now, metadata=metadata)
		except StaleTransitionError as e:
			logger.info(str(e))
			stale += 1
			continue
		defunct[celebration.donated_by].append(celebration)

	for donor, celebrations in defunct.items():
		notify_on_commit(donor.email, "defunct_notification", {
			"donor": donor,
			"celebrations": celebrations,
			"total": sum(c.donation_amount for c in celebrations),
		})

	return OrderedDict([
		("defunct", sum(len(v) for v in defunct.values())),
		("donors_notified", len(defunct)),
		("stale", stale),
	])

def send_defunct_warnings(now=None, end_dates=None):
	"""In the month before the current session of Congress ends, warns each
	donor with open Celebrations from the session that they will become defunct.
	Each donor is warned once per session."""

	from celebsite.models import Donor

	session = current_session(now, end_dates=end_dates)
	if not session.in_warning_period(now):
		return OrderedDict([("session", session.key), ("warned", 0)])

	open_celebrations = defaultdict(list)
	qs = Celebration.objects\
		.filter(congressional_session=session.key, current_status__in=(CelebrationStatus.Active, CelebrationStatus.Paused))\
		.select_related('donee')\
		.order_by('id')
	for celebration in qs:
		open_celebrations[celebration.donated_by_id].append(celebration)

	warned = 0
	for donor in Donor.objects.filter(id__in=open_celebrations.keys()).order_by('id'):
		if session.key in donor.extra.get("defunct_warnings", []):
			continue

		notify_on_commit(donor.email, "defunct_warning", {
			"donor": donor,
			"celebrations": open_celebrations[donor.id],
			"session": session,
			"session_end_date": session.end,
		})

		# Record that we warned them.
		donor.extra.setdefault("defunct_warnings", []).append(session.key)
		donor.save(update_fields=['extra'])
		warned += 1

	return OrderedDict([("session", session.key), ("warned", warned)])
