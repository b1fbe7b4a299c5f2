from django.db import models, migrations
import django.db.models.deletion
import django.utils.timezone
import celebsite.utils


STATUS_CHOICES = [('active', 'Active'), ('paused', 'Paused'), ('resolved', 'Resolved'), ('defunct', 'Defunct')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('celebsite', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Recipient',
            fields=[
                ('id', models.AutoField(serialize=False, primary_key=True, auto_created=True, verbose_name='ID')),
                ('fec_id', models.CharField(max_length=9, unique=True, help_text='The FEC candidate ID.')),
                ('name', models.CharField(max_length=128, help_text='The candidate\'s name as it appears in notifications.')),
                ('state', models.CharField(max_length=2, blank=True, null=True, help_text='USPS abbreviation of the state the candidate is running in.')),
                ('office_sought', models.CharField(max_length=7, blank=True, null=True, help_text='A code for the seat the candidate is running for, e.g. H-TX-30 or S-VA-02.')),
                ('ocd_id', models.CharField(max_length=96, blank=True, null=True, db_index=True, help_text="The Open Civic Data division ID of the candidate's district.")),
                ('primary_date', models.DateField(blank=True, null=True, help_text='The date of the primary election for this seat in the current cycle, if known.')),
                ('general_date', models.DateField(blank=True, null=True, help_text='The date of the general election for this seat when it is not the regular federal general election date (e.g. a special election).')),
                ('has_challenger', models.BooleanField(default=True, help_text='Whether the seat is currently contested. Celebrations are paused while it is not.')),
                ('created', models.DateTimeField(auto_now_add=True)),
                ('updated', models.DateTimeField(auto_now=True)),
                ('extra', celebsite.utils.JSONField(blank=True, default=dict, help_text='Additional information stored with this object.')),
            ],
        ),
        migrations.CreateModel(
            name='Celebration',
            fields=[
                ('id', models.AutoField(serialize=False, primary_key=True, auto_created=True, verbose_name='ID')),
                ('created', models.DateTimeField(default=django.utils.timezone.now, db_index=True, help_text='The date and time of the donation. Limits are reckoned from this date.')),
                ('updated', models.DateTimeField(auto_now=True)),
                ('donation_amount', models.DecimalField(max_digits=8, decimal_places=2, help_text='The donation to the recipient, in dollars.')),
                ('tip_amount', models.DecimalField(max_digits=8, decimal_places=2, default=0, help_text='An optional contribution to our PAC, in dollars.')),
                ('current_status', models.CharField(max_length=10, choices=STATUS_CHOICES, default='active', db_index=True, help_text='The current status of the Celebration. Always equal to the new_status of the last status change, or active if there are none.')),
                ('bill_reference', models.CharField(max_length=32, db_index=True, help_text='The bill whose resolution the Celebration is waiting on, e.g. hr1234-119.')),
                ('congressional_session', models.CharField(max_length=8, db_index=True, help_text='The session of Congress the Celebration was made in, e.g. 119-2. The Celebration becomes defunct when it ends.')),
                ('extra', celebsite.utils.JSONField(blank=True, default=dict, help_text='Additional information stored with this object.')),
                ('donated_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='celebrations', to='celebsite.Donor', help_text='The donor who made the Celebration.')),
                ('donee', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='celebrations', to='celebrations.Recipient', help_text='The candidate the donation goes to.')),
            ],
        ),
        migrations.CreateModel(
            name='CelebrationStatusChange',
            fields=[
                ('id', models.AutoField(serialize=False, primary_key=True, auto_created=True, verbose_name='ID')),
                ('created', models.DateTimeField(default=django.utils.timezone.now, db_index=True, help_text='When the status changed.')),
                ('previous_status', models.CharField(max_length=10, choices=STATUS_CHOICES)),
                ('new_status', models.CharField(max_length=10, choices=STATUS_CHOICES)),
                ('reason', models.TextField(help_text='A human-readable explanation of the change.')),
                ('triggered_by', models.CharField(max_length=24, default='system', choices=[('system', 'System'), ('admin', 'Admin'), ('user', 'User'), ('api', 'API'), ('congressional_session', 'Congressional Session')], help_text='What caused the change.')),
                ('compliance_tier_at_time', models.CharField(max_length=12, help_text="The donor's compliance tier when the status changed.")),
                ('metadata', celebsite.utils.JSONField(blank=True, default=dict, help_text='Details of the change, such as the bill outcome or the session that ended.')),
                ('celebration', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='status_ledger', to='celebrations.Celebration', help_text='The Celebration whose status changed.')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
    ]
