from django.db import models, migrations
import celebsite.utils


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Donor',
            fields=[
                ('id', models.AutoField(serialize=False, primary_key=True, auto_created=True, verbose_name='ID')),
                ('email', models.EmailField(max_length=254, unique=True, help_text="The donor's email address, where notifications are sent.")),
                ('created', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated', models.DateTimeField(auto_now=True, db_index=True)),
                ('first_name', models.CharField(max_length=64, blank=True, default='')),
                ('last_name', models.CharField(max_length=64, blank=True, default='')),
                ('address', models.CharField(max_length=128, blank=True, default='', help_text='Street address.')),
                ('city', models.CharField(max_length=64, blank=True, default='')),
                ('state', models.CharField(max_length=2, blank=True, default='', help_text='USPS state abbreviation. Not required for addresses outside the United States.')),
                ('zip_code', models.CharField(max_length=10, blank=True, default='')),
                ('country', models.CharField(max_length=64, default='United States')),
                ('passport', models.CharField(max_length=32, blank=True, default='', help_text='U.S. passport number, required of citizens living abroad in lieu of a U.S. address.')),
                ('is_employed', models.BooleanField(default=True)),
                ('occupation', models.CharField(max_length=64, blank=True, default='')),
                ('employer', models.CharField(max_length=64, blank=True, default='')),
                ('extra', celebsite.utils.JSONField(blank=True, default=dict, help_text='Additional information stored with this object, such as geocoding results.')),
            ],
        ),
    ]
