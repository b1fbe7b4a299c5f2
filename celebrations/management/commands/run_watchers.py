# Makes Celebrations defunct when their session of Congress ends and
# warns donors before it does. Run daily from cron.
# -------------------------------------------------------------------

from django.core.management.base import BaseCommand, CommandError
from django.conf import settings

from celebrations.lifecycle import sweep_defunct, send_defunct_warnings
from celebrations.sessions import current_congress, session_info, fetch_session_end_dates
from celebrations.taskutils import exclusive_process, ProcessAlreadyRunning

import sys, tqdm, rtyaml

class Command(BaseCommand):
	help = 'Runs the defunct sweep and sends defunct warnings.'

	def add_arguments(self, parser):
		parser.add_argument('--date', help="Run as if today were this date (YYYY-MM-DD).")
		parser.add_argument('--no-warnings', action='store_true', help="Only run the defunct sweep.")

	def handle(self, *args, **options):
		# Ensure this process does not run concurrently.
		try:
			exclusive_process('celebrations-run-watchers')
		except ProcessAlreadyRunning as e:
			raise CommandError(str(e))

		now = options['date'] # parsed by the cycle functions, None means today

		# Use actual adjournment dates when we can get them.
		end_dates = dict(settings.CONGRESS_SESSION_END_DATES)
		if settings.CONGRESS_GOV_API_KEY:
			congress = current_congress(now)
			for c in (congress - 1, congress):
				end_dates.update(fetch_session_end_dates(c))

		progress = tqdm.tqdm if sys.stdout.isatty() else (lambda x : x)

		session = session_info(now, end_dates=end_dates)

		summary = { }
		summary["session"] = {
			"key": session["session_key"],
			"ends": session["formatted_session_end_date"],
			"has_ended": session["has_ended"],
			"in_warning_period": session["in_warning_period"],
			"next_election": session["formatted_next_election_date"],
		}
		summary["defunct_sweep"] = sweep_defunct(now=now, end_dates=end_dates, progress=progress)
		if not options['no_warnings']:
			summary["defunct_warnings"] = send_defunct_warnings(now=now, end_dates=end_dates)

		self.stdout.write(rtyaml.dump(summary))
