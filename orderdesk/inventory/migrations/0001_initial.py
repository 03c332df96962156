# Generated manually for the initial stock ledger schema

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('order_placed', 'Order Placed'), ('order_cancelled', 'Order Cancelled'), ('adjustment', 'Adjustment'), ('restock', 'Restock'), ('return', 'Return')], max_length=20)),
                ('quantity', models.IntegerField(help_text='Signed delta: negative removes stock')),
                ('previous_stock', models.IntegerField()),
                ('new_stock', models.IntegerField()),
                ('reference_type', models.CharField(blank=True, choices=[('order', 'Order'), ('manual', 'Manual'), ('return', 'Return'), ('adjustment', 'Adjustment')], max_length=20, null=True)),
                ('reference_id', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('user_email', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_transactions', to='catalog.item')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='stock_transactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'stock_transactions',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['item', '-created_at'], name='idx_stock_tx_item_created'),
                    models.Index(fields=['reference_type', 'reference_id'], name='idx_stock_tx_reference'),
                    models.Index(fields=['transaction_type'], name='idx_stock_tx_type'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(new_stock__gte=0), name='chk_stock_tx_new_stock_non_negative'),
                    models.CheckConstraint(condition=models.Q(new_stock=models.F('previous_stock') + models.F('quantity')), name='chk_stock_tx_balance'),
                ],
            },
        ),
    ]
