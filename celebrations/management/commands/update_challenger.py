# Records whether a recipient's seat is contested, pausing or
# reactivating the recipient's Celebrations.
# -----------------------------------------------------------

from django.core.management.base import BaseCommand, CommandError

from celebrations.lifecycle import update_challenger
from celebrations.models import Recipient

import rtyaml

class Command(BaseCommand):
	help = 'Records whether a recipient has a challenger.'

	def add_arguments(self, parser):
		parser.add_argument('fec_id', help="The recipient's FEC candidate ID.")
		parser.add_argument('state', choices=['contested', 'uncontested'])

	def handle(self, *args, **options):
		try:
			recipient = Recipient.objects.get(fec_id=options['fec_id'])
		except Recipient.DoesNotExist:
			raise CommandError("There is no recipient with FEC ID %s." % options['fec_id'])

		counts = update_challenger(recipient, options['state'] == 'contested')
		self.stdout.write(rtyaml.dump({ str(recipient): dict(counts) }))
