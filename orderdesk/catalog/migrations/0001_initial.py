# Generated manually for the initial catalog schema

from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=255)),
                ('price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('image_url', models.CharField(blank=True, help_text='Reference into the external blob store', max_length=1000, null=True)),
                ('color', models.CharField(blank=True, max_length=100)),
                ('fabric', models.CharField(blank=True, max_length=100)),
                ('special_features', models.TextField(blank=True)),
                ('stock_quantity', models.IntegerField(default=0)),
                ('low_stock_threshold', models.IntegerField(default=5)),
                ('track_stock', models.BooleanField(default=False)),
                ('cost_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('supplier_name', models.CharField(blank=True, max_length=255)),
                ('supplier_sku', models.CharField(blank=True, max_length=100)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'items',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['track_stock', 'stock_quantity'], name='idx_item_stock'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(stock_quantity__gte=0), name='chk_item_stock_non_negative'),
                    models.CheckConstraint(condition=models.Q(price__gte=Decimal('0')), name='chk_item_price_non_negative'),
                ],
            },
        ),
    ]
