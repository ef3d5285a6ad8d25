import decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(db_index=True, max_length=64)),
                ('customer_name', models.CharField(blank=True, default='', max_length=255)),
                ('customer_phone', models.CharField(blank=True, default='', max_length=32)),
                ('network', models.CharField(choices=[('MTN', 'MTN'), ('TELECEL', 'Telecel'), ('ISHARE', 'AirtelTigo iShare'), ('BIGTIME', 'AirtelTigo BigTime')], db_index=True, max_length=16)),
                ('total', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=12)),
                ('currency', models.CharField(default='GHS', max_length=8)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='processing', max_length=16)),
                ('dispatch_status', models.CharField(choices=[('not_dispatched', 'Not dispatched'), ('success', 'Accepted by provider'), ('failed', 'Failed'), ('disabled', 'Disabled')], db_index=True, default='not_dispatched', max_length=16)),
                ('provider', models.CharField(blank=True, max_length=32, null=True)),
                ('provider_reference', models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ('dispatch_note', models.TextField(blank=True, null=True)),
                ('last_external_status', models.CharField(blank=True, max_length=120, null=True)),
                ('last_synced_at', models.DateTimeField(blank=True, null=True)),
                ('dispatched_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'orders',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['status', 'dispatch_status'], name='orders_status_dispatch_idx')],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_name', models.CharField(max_length=255)),
                ('variant_id', models.CharField(blank=True, max_length=64, null=True)),
                ('variant_size', models.CharField(blank=True, default='', max_length=32)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('price', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=12)),
                ('beneficiary_number', models.CharField(blank=True, default='', max_length=32)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='orders.order')),
            ],
            options={
                'db_table': 'order_items',
                'ordering': ['id'],
            },
        ),
    ]
