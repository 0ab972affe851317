# Generated manually for standalone django-fulfillment package

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("pending_api_submission", "Pending API submission"),
    ("in_progress", "In progress"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("api_submission_failed", "API submission failed"),
]


def order_fields():
    return [
        (
            "id",
            models.BigAutoField(
                auto_created=True,
                primary_key=True,
                serialize=False,
                verbose_name="ID",
            ),
        ),
        (
            "target_link",
            models.CharField(
                help_text="Link to the post or comment receiving the engagement",
                max_length=2048,
            ),
        ),
        (
            "price",
            models.DecimalField(
                decimal_places=4,
                help_text="Amount debited at intake (internal precision)",
                max_digits=19,
            ),
        ),
        (
            "status",
            models.CharField(
                choices=STATUS_CHOICES,
                db_index=True,
                default="pending",
                max_length=32,
            ),
        ),
        (
            "external_reference",
            models.CharField(
                blank=True,
                db_index=True,
                help_text="Provider order number, set once the provider accepts the order",
                max_length=255,
                null=True,
            ),
        ),
        (
            "last_checked_at",
            models.DateTimeField(
                blank=True,
                help_text="When the provider status was last polled",
                null=True,
            ),
        ),
        (
            "error_annotation",
            models.TextField(
                blank=True,
                default="",
                help_text="Human-readable failure context",
            ),
        ),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        (
            "owner",
            models.ForeignKey(
                help_text="Customer whose balance paid for the order",
                on_delete=django.db.models.deletion.PROTECT,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="VoteOrder",
            fields=order_fields() + [
                ("quantity", models.PositiveIntegerField()),
                (
                    "service_kind",
                    models.PositiveSmallIntegerField(
                        choices=[
                            (1, "Post upvotes"),
                            (2, "Post downvotes"),
                            (3, "Comment upvotes"),
                            (4, "Comment downvotes"),
                        ]
                    ),
                ),
                (
                    "speed",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Provider delivery speed setting",
                        max_digits=10,
                    ),
                ),
                ("delivered_count", models.PositiveIntegerField(default=0)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "abstract": False,
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("delivered_count__lte", models.F("quantity"))
                        ),
                        name="vote_order_delivered_within_quantity",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="CommentOrder",
            fields=order_fields() + [
                ("content", models.TextField()),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="BalanceAccount",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "balance",
                    models.DecimalField(decimal_places=4, default=0, max_digits=19),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_account",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("balance__gte", 0)),
                        name="balance_account_not_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceTransaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=4, max_digits=19)),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("deposit", "Deposit"),
                            ("order_debit", "Order debit"),
                            ("refund", "Refund"),
                            ("admin_adjustment", "Admin adjustment"),
                        ],
                        db_index=True,
                        max_length=32,
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                (
                    "balance_after",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Account balance right after this change",
                        max_digits=19,
                    ),
                ),
                (
                    "related_order_id",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "related_order_content_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        to="contenttypes.contenttype",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["related_order_content_type", "related_order_id"],
                        name="fulfillment_txn_order_idx",
                    )
                ],
            },
        ),
    ]
