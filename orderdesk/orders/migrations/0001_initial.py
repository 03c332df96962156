# Generated manually for the initial orders schema

from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import orderdesk.orders.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(default=orderdesk.orders.models.generate_order_id, max_length=20, unique=True)),
                ('order_from', models.CharField(choices=[('instagram', 'Instagram'), ('facebook', 'Facebook'), ('whatsapp', 'WhatsApp'), ('call', 'Call'), ('offline', 'Offline')], max_length=20)),
                ('customer_name', models.CharField(max_length=255)),
                ('customer_id', models.CharField(db_index=True, help_text='Business customer identifier', max_length=50)),
                ('address', models.TextField(blank=True)),
                ('customer_notes', models.TextField(blank=True, validators=[django.core.validators.MaxLengthValidator(5000)])),
                ('total_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('payment_status', models.CharField(choices=[('unpaid', 'Unpaid'), ('partially_paid', 'Partially Paid'), ('paid', 'Paid'), ('cash_on_delivery', 'Cash on Delivery'), ('refunded', 'Refunded')], default='unpaid', max_length=20)),
                ('confirmation_status', models.CharField(choices=[('unconfirmed', 'Unconfirmed'), ('pending_confirmation', 'Pending Confirmation'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled')], default='unconfirmed', max_length=30)),
                ('delivery_status', models.CharField(choices=[('not_shipped', 'Not Shipped'), ('shipped', 'Shipped'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out for Delivery'), ('delivered', 'Delivered'), ('returned', 'Returned')], default='not_shipped', max_length=20)),
                ('order_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('expected_delivery_date', models.DateTimeField(blank=True, null=True)),
                ('actual_delivery_date', models.DateTimeField(blank=True, null=True)),
                ('priority', models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(5)])),
                ('tracking_id', models.CharField(blank=True, max_length=100)),
                ('delivery_partner', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders_created', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'orders',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['-created_at', '-id'], name='idx_order_cursor'),
                    models.Index(fields=['status'], name='idx_order_status'),
                    models.Index(fields=['expected_delivery_date'], name='idx_order_expected_delivery'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(paid_amount__gte=Decimal('0')), name='chk_order_paid_non_negative'),
                    models.CheckConstraint(condition=models.Q(priority__lte=5), name='chk_order_priority_range'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('quantity', models.PositiveIntegerField()),
                ('customization_request', models.TextField(blank=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_lines', to='catalog.item')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='orders.order')),
            ],
            options={
                'db_table': 'order_items',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name='chk_order_item_quantity_positive'),
                ],
            },
        ),
    ]
