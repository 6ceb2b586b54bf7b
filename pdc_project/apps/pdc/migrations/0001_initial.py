from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


STATUS_CHOICES = [
    ('RECEIVED', 'Received'),
    ('DUE', 'Due'),
    ('DEPOSITED', 'Deposited'),
    ('CLEARED', 'Cleared'),
    ('BOUNCED', 'Bounced'),
    ('CANCELLED', 'Cancelled'),
    ('REPLACED', 'Replaced'),
    ('WITHDRAWN', 'Withdrawn'),
]

METHOD_CHOICES = [
    ('BANK_TRANSFER', 'Bank Transfer'),
    ('CASH', 'Cash'),
    ('NEW_CHEQUE', 'New Cheque'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('property', '0001_initial'),
        ('finance', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PDC',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('is_active', models.BooleanField(default=True)),
                ('pdc_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('cheque_number', models.CharField(max_length=50)),
                ('bank_name', models.CharField(max_length=100)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('cheque_date', models.DateField(help_text='Date the cheque is payable')),
                ('status', models.CharField(choices=STATUS_CHOICES, default='RECEIVED', max_length=20)),
                ('version', models.PositiveIntegerField(default=1)),
                ('deposit_date', models.DateField(blank=True, null=True)),
                ('cleared_date', models.DateField(blank=True, null=True)),
                ('bounced_date', models.DateField(blank=True, null=True)),
                ('bounce_reason', models.CharField(blank=True, max_length=255)),
                ('withdrawal_date', models.DateField(blank=True, null=True)),
                ('withdrawal_reason', models.CharField(blank=True, max_length=255)),
                ('new_payment_method', models.CharField(blank=True, choices=METHOD_CHOICES, max_length=20)),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('notes', models.CharField(blank=True, max_length=500)),
                ('bank_account', models.ForeignKey(blank=True, help_text='Deposit destination', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='deposited_pdcs', to='finance.bankaccount')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='%(app_label)s_%(class)s_created', to=settings.AUTH_USER_MODEL)),
                ('invoice', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pdcs', to='finance.invoice')),
                ('lease', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pdcs', to='property.lease')),
                ('original_cheque', models.ForeignKey(blank=True, help_text='Bounced cheque this one replaces', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='pdc.pdc')),
                ('replacement_cheque', models.ForeignKey(blank=True, help_text='Cheque that replaced this one after a bounce', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='pdc.pdc')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='pdcs', to='property.tenant')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='%(app_label)s_%(class)s_updated', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'PDC',
                'verbose_name_plural': 'PDCs',
                'ordering': ['cheque_date', 'id'],
                'indexes': [
                    models.Index(fields=['status', 'cheque_date'], name='pdc_status_cheque_date_idx'),
                    models.Index(fields=['bank_name'], name='pdc_bank_name_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['BOUNCED', 'DEPOSITED', 'DUE', 'RECEIVED'])), fields=('tenant', 'cheque_number', 'bank_name'), name='unique_live_pdc_per_tenant'),
                    models.UniqueConstraint(condition=models.Q(('replacement_cheque__isnull', False)), fields=('replacement_cheque',), name='pdc_single_replacement'),
                    models.UniqueConstraint(condition=models.Q(('original_cheque__isnull', False)), fields=('original_cheque',), name='pdc_single_original'),
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='pdc_amount_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PDCStatusTransition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sequence', models.PositiveIntegerField()),
                ('from_status', models.CharField(blank=True, choices=STATUS_CHOICES, max_length=20, null=True)),
                ('to_status', models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ('transitioned_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('notes', models.TextField(blank=True)),
                ('request_id', models.CharField(blank=True, help_text='Client request id; a retried request never writes twice', max_length=64, null=True, unique=True)),
                ('pdc', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transitions', to='pdc.pdc')),
                ('performed_by', models.ForeignKey(blank=True, help_text='Empty for system transitions (due-window sweep)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pdc_transitions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['pdc', 'sequence'],
                'constraints': [
                    models.UniqueConstraint(fields=('pdc', 'sequence'), name='unique_pdc_transition_sequence'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WithdrawalSettlement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('is_active', models.BooleanField(default=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('method', models.CharField(choices=METHOD_CHOICES, max_length=20)),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('link_status', models.CharField(choices=[('not_required', 'Not Required'), ('pending_link', 'Pending Link'), ('linked', 'Linked')], default='not_required', max_length=20)),
                ('linked_at', models.DateTimeField(blank=True, null=True)),
                ('bank_account', models.ForeignKey(blank=True, help_text='Receiving account for bank transfers', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='withdrawal_settlements', to='finance.bankaccount')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='%(app_label)s_%(class)s_created', to=settings.AUTH_USER_MODEL)),
                ('new_pdc', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='settles_withdrawal', to='pdc.pdc')),
                ('pdc', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='withdrawal_settlement', to='pdc.pdc')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='withdrawal_settlements', to='property.tenant')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='%(app_label)s_%(class)s_updated', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('link_status', 'pending_link')), fields=('tenant',), name='one_pending_settlement_per_tenant'),
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='settlement_amount_positive'),
                ],
            },
        ),
    ]
