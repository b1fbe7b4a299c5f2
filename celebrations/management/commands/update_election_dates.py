# Fetches state primary and special election dates from OpenFEC and
# records them on our Recipients. Run weekly from cron.
# -------------------------------------------------------------------

from django.core.management.base import BaseCommand, CommandError

from celebrations.cycles import current_campaign_cycle
from celebrations.elections import fetch_election_dates, apply_election_dates

import rtyaml

class Command(BaseCommand):
	help = 'Updates recipient primary and special election dates from OpenFEC.'

	def add_arguments(self, parser):
		parser.add_argument('--year', type=int, help="The election year. Defaults to the current cycle's.")

	def handle(self, *args, **options):
		year = options['year'] or current_campaign_cycle().end.year
		if year % 2 == 1:
			raise CommandError("There are no regular federal elections in odd years (%d)." % year)

		dates = fetch_election_dates(year)
		changes = apply_election_dates(dates)

		self.stdout.write(rtyaml.dump({
			"election_year": year,
			"states": len(dates),
			"changed": changes,
		}))
