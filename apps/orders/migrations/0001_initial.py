from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("products", models.JSONField(default=list)),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("address", models.TextField()),
                ("phone_number", models.CharField(max_length=32)),
                ("ordered_at", models.BigIntegerField(help_text="Epoch milliseconds.")),
                (
                    "status",
                    models.PositiveSmallIntegerField(
                        choices=[
                            (0, "Placed"),
                            (1, "Shipped"),
                            (2, "Out For Delivery"),
                            (3, "Delivered"),
                            (4, "Cancelled"),
                        ],
                        default=0,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(choices=[("COD", "COD"), ("M-Pesa", "M-Pesa")], default="COD", max_length=20),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("initiated", "Initiated"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("payment_details", models.JSONField(blank=True, default=dict)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "sellers",
                    models.ManyToManyField(blank=True, related_name="seller_orders", to=settings.AUTH_USER_MODEL),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["user", "ordered_at"], name="orders_orde_user_id_4b7e21_idx"),
                    models.Index(fields=["status"], name="orders_orde_status_9c3d5a_idx"),
                ],
            },
        ),
    ]
