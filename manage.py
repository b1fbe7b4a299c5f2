#!/usr/bin/env python3
import os
import sys

def mail_errors_to_admins():
	# Commands run unattended (run_watchers, update_election_dates) have
	# no one watching stderr, so failures are mailed to ADMINS too.
	import logging
	from shlex import quote

	class CommandFailureMailer(logging.Handler):
		def emit(self, record):
			from django.core.mail import mail_admins
			command_line = " ".join(quote(arg) for arg in sys.argv)
			mail_admins(("%s: %s" % (command_line, record.getMessage()))[:989], self.format(record), fail_silently=True)

	logger = logging.getLogger('celebrations.management_command')
	logger.propagate = False
	logger.addHandler(CommandFailureMailer())
	return logger

if __name__ == "__main__":
	os.environ.setdefault("DJANGO_SETTINGS_MODULE", "celebsite.settings")

	from django.core.management import execute_from_command_line

	if sys.stderr.isatty():
		execute_from_command_line(sys.argv)
	else:
		logger = mail_errors_to_admins()
		try:
			execute_from_command_line(sys.argv)
		except Exception as e:
			logger.error(repr(e), exc_info=sys.exc_info())
			raise
