# Resolves the Celebrations waiting on a bill.
# --------------------------------------------

from django.core.management.base import BaseCommand

from celebrations.lifecycle import resolve_bill
from celebrations.models import TriggeredBy

import sys, tqdm, rtyaml

class Command(BaseCommand):
	help = 'Resolves the Celebrations waiting on a bill.'

	def add_arguments(self, parser):
		parser.add_argument('bill', help="The bill reference, e.g. hr1234-119.")
		parser.add_argument('reason', help="What happened to the bill, shown to donors.")

	def handle(self, *args, **options):
		progress = tqdm.tqdm if sys.stdout.isatty() else (lambda x : x)
		counts = resolve_bill(options['bill'], options['reason'], triggered_by=TriggeredBy.Admin, progress=progress)
		self.stdout.write(rtyaml.dump({ options['bill']: dict(counts) }))
