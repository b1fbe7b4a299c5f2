#####################################################################
#
# Notifications
#
# Emails to donors about their Celebrations. Status changes schedule
# their emails to go out after the database transaction commits, so a
# mail failure never undoes a change that already happened.
#
#####################################################################

import logging

from django.conf import settings
from django.db import transaction

from htmlemailer import send_mail

from celebsite.utils import mergedicts

logger = logging.getLogger(__name__)

TEMPLATES = (
	"challenger_disappeared",
	"challenger_reappeared",
	"celebration_resolved",
	"defunct_notification",
	"defunct_warning",
)

def notify(address, template_id, template_args):
	if template_id not in TEMPLATES:
		raise ValueError("%s is not a notification template." % template_id)

	context = mergedicts({ "SITE_ROOT_URL": settings.SITE_ROOT_URL }, template_args)

	try:
		send_mail(
			"celebrations/mail/%s" % template_id,
			settings.DEFAULT_FROM_EMAIL,
			[address],
			context)
	except Exception:
		# The status change this is about is already committed. Log it
		# so admins can follow up, but don't fail the caller.
		logger.exception("Failed to send %s notification to %s.", template_id, address)
		return False

	return True

def notify_on_commit(address, template_id, template_args):
	transaction.on_commit(lambda : notify(address, template_id, template_args))

def notify_status_change(celebration, entry):
	# The per-Celebration notifications. Defunct notices are grouped by
	# donor and sent by the sweep instead.
	from celebrations.models import CelebrationStatus
	template_id = {
		("active", "paused"): "challenger_disappeared",
		("paused", "active"): "challenger_reappeared",
		("active", "resolved"): "celebration_resolved",
	}.get((CelebrationStatus(entry.previous_status).value, CelebrationStatus(entry.new_status).value))
	if template_id is None:
		return
	notify_on_commit(celebration.donated_by.email, template_id, {
		"donor": celebration.donated_by,
		"celebration": celebration,
		"recipient": celebration.donee,
		"reason": entry.reason,
	})
