"""Order, balance account, and balance transaction models."""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.db.models import Q

from django_fulfillment.exceptions import ImmutableTransactionError, OrderDeletionError


class OrderKind(models.TextChoices):
    VOTE = 'vote', 'Vote order'
    COMMENT = 'comment', 'Comment order'


class OrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PENDING_API_SUBMISSION = 'pending_api_submission', 'Pending API submission'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    API_SUBMISSION_FAILED = 'api_submission_failed', 'API submission failed'


TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class ServiceKind(models.IntegerChoices):
    POST_UPVOTES = 1, 'Post upvotes'
    POST_DOWNVOTES = 2, 'Post downvotes'
    COMMENT_UPVOTES = 3, 'Comment upvotes'
    COMMENT_DOWNVOTES = 4, 'Comment downvotes'


class OrderQuerySet(models.QuerySet):
    """Custom queryset for fulfillment orders."""

    def for_owner(self, user):
        """Return orders placed by the given user."""
        return self.filter(owner=user)

    def open(self):
        """Return orders not yet in a terminal status."""
        return self.exclude(status__in=TERMINAL_STATUSES)

    def tracked(self):
        """Return orders the provider has accepted."""
        return self.exclude(Q(external_reference__isnull=True) | Q(external_reference=''))

    def eligible_for_refresh(self):
        """Return orders worth polling: tracked and not terminal."""
        return self.tracked().open()

    def not_checked_since(self, cutoff):
        """Return orders never checked or last checked before cutoff."""
        return self.filter(Q(last_checked_at__isnull=True) | Q(last_checked_at__lt=cutoff))


class FulfillmentOrder(models.Model):
    """
    Abstract base for orders handed to the external fulfillment provider.

    Orders are an audit trail: they are never deleted, and every lifecycle
    write goes through django_fulfillment.store so the terminal-status and
    write-once invariants hold.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+',
        help_text="Customer whose balance paid for the order",
    )
    target_link = models.CharField(
        max_length=2048,
        help_text="Link to the post or comment receiving the engagement",
    )
    price = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        help_text="Amount debited at intake (internal precision)",
    )
    status = models.CharField(
        max_length=32,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )
    external_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider order number, set once the provider accepts the order",
    )
    last_checked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the provider status was last polled",
    )
    error_annotation = models.TextField(
        blank=True,
        default='',
        help_text="Human-readable failure context",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrderQuerySet.as_manager()

    kind = None

    class Meta:
        abstract = True
        ordering = ['-created_at', '-id']

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def delete(self, *args, **kwargs):
        raise OrderDeletionError(
            f"Cannot delete {self.kind} order {self.pk} - orders are retained as an audit trail"
        )


class VoteOrder(FulfillmentOrder):
    """
    Order for a number of votes on a post or comment.

    Usage:
        order = VoteOrder.objects.create(
            owner=user,
            target_link="https://www.reddit.com/r/python/comments/abc123/",
            quantity=50,
            service_kind=ServiceKind.POST_UPVOTES,
            speed=Decimal('60'),
            price=Decimal('10.00'),
        )
    """

    kind = OrderKind.VOTE

    quantity = models.PositiveIntegerField()
    service_kind = models.PositiveSmallIntegerField(choices=ServiceKind.choices)
    speed = models.DecimalField(
        max_digits=10,
        decimal_places=4,
        help_text="Provider delivery speed setting",
    )
    delivered_count = models.PositiveIntegerField(default=0)

    class Meta(FulfillmentOrder.Meta):
        app_label = 'django_fulfillment'
        constraints = [
            models.CheckConstraint(
                condition=Q(delivered_count__lte=models.F('quantity')),
                name="vote_order_delivered_within_quantity",
            ),
        ]

    def __str__(self):
        return f"Vote order #{self.pk} ({self.quantity} x {self.get_service_kind_display()}, {self.get_status_display()})"


class CommentOrder(FulfillmentOrder):
    """Order for a single comment posted under a link."""

    kind = OrderKind.COMMENT

    content = models.TextField()

    class Meta(FulfillmentOrder.Meta):
        app_label = 'django_fulfillment'

    def __str__(self):
        return f"Comment order #{self.pk} ({self.get_status_display()})"


ORDER_MODELS = {
    OrderKind.VOTE: VoteOrder,
    OrderKind.COMMENT: CommentOrder,
}


class BalanceAccount(models.Model):
    """
    Prepaid balance of one customer.

    The row is locked with select_for_update() for every debit and credit,
    which serializes balance mutations per user.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='balance_account',
    )
    balance = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        default=0,
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = 'django_fulfillment'
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="balance_account_not_negative",
            ),
        ]

    def __str__(self):
        return f"Balance of {self.user}: {self.balance}"


class BalanceTransactionQuerySet(models.QuerySet):
    """Custom queryset for BalanceTransaction."""

    def for_order(self, order):
        """Return transactions tied to the given order."""
        content_type = ContentType.objects.get_for_model(order)
        return self.filter(
            related_order_content_type=content_type,
            related_order_id=str(order.pk),
        )

    def debits(self):
        return self.filter(transaction_type=BalanceTransaction.TransactionType.ORDER_DEBIT)

    def refunds(self):
        return self.filter(transaction_type=BalanceTransaction.TransactionType.REFUND)


class BalanceTransaction(models.Model):
    """
    Immutable record of one balance change.

    Amount is signed: debits are negative, credits positive.
    """

    class TransactionType(models.TextChoices):
        DEPOSIT = 'deposit', 'Deposit'
        ORDER_DEBIT = 'order_debit', 'Order debit'
        REFUND = 'refund', 'Refund'
        ADMIN_ADJUSTMENT = 'admin_adjustment', 'Admin adjustment'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='balance_transactions',
    )
    amount = models.DecimalField(
        max_digits=19,
        decimal_places=4,
    )
    transaction_type = models.CharField(
        max_length=32,
        choices=TransactionType.choices,
        db_index=True,
    )
    description = models.TextField(blank=True, default='')
    balance_after = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        help_text="Account balance right after this change",
    )

    # Related order via GenericFK - one table per order kind
    related_order_content_type = models.ForeignKey(
        ContentType,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
    )
    related_order_id = models.CharField(
        max_length=255,
        blank=True,
        default='',
    )
    related_order = GenericForeignKey('related_order_content_type', 'related_order_id')

    created_at = models.DateTimeField(auto_now_add=True)

    objects = BalanceTransactionQuerySet.as_manager()

    class Meta:
        app_label = 'django_fulfillment'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(
                fields=['related_order_content_type', 'related_order_id'],
                name='fulfillment_txn_order_idx',
            ),
        ]

    def save(self, *args, **kwargs):
        if self.pk:
            raise ImmutableTransactionError(
                f"Cannot modify balance transaction {self.pk}. Record a new transaction instead."
            )
        if self.related_order_id is None:
            self.related_order_id = ''
        else:
            self.related_order_id = str(self.related_order_id)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableTransactionError(
            f"Cannot delete balance transaction {self.pk}"
        )

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.amount} for {self.user}"
