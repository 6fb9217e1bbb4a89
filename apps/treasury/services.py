import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from .models import Account, TreasuryTransaction

logger = logging.getLogger(__name__)


def post_transaction(account, type, amount, category='Autre', payment_method='cash',
                     description='', reference_type='', reference_id='',
                     transaction_date=None, tags=None, user=None):
    """
    Record a treasury movement and move the account balance accordingly.

    The account row is locked so concurrent postings keep ``balance_after``
    consistent with the running balance.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValidationError("Le montant doit être supérieur à 0.")
    if type not in ('income', 'expense'):
        raise ValidationError(f"Type de mouvement inconnu : {type}")

    with transaction.atomic():
        locked = Account.objects.select_for_update().get(pk=account.pk)
        if not locked.is_active:
            raise ValidationError(f"Le compte {locked.name} est désactivé.")
        new_balance = locked.current_balance + (amount if type == 'income' else -amount)
        entry = TreasuryTransaction.objects.create(
            account=locked,
            type=type,
            category=category,
            amount=amount,
            payment_method=payment_method,
            transaction_date=transaction_date or timezone.localdate(),
            description=description,
            tags=tags or [],
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id else '',
            balance_after=new_balance,
            created_by=user,
        )
        locked.current_balance = new_balance
        locked.save(update_fields=['current_balance'])

    account.current_balance = new_balance
    logger.info("Treasury %s of %s on %s, balance %s", type, amount, locked.name, new_balance)
    return entry


def reverse_transaction(entry):
    """Undo the balance effect of ``entry`` and delete it"""
    with transaction.atomic():
        locked = Account.objects.select_for_update().get(pk=entry.account_id)
        locked.current_balance -= entry.signed_amount
        locked.save(update_fields=['current_balance'])
        entry.delete()
    logger.info("Treasury movement on %s reversed, balance %s", locked.name, locked.current_balance)
    return locked


def post_expense(expense, user=None):
    """Post the treasury movement of an expense paid from an account"""
    if expense.account_id is None:
        return None
    entry = post_transaction(
        expense.account,
        'expense',
        expense.amount,
        category=expense.treasury_category,
        payment_method=expense.payment_method,
        description=f"{expense.get_category_display()} - {expense.description}",
        reference_type='expense',
        reference_id=expense.pk,
        transaction_date=expense.expense_date,
        tags=expense.tags,
        user=user,
    )
    expense.transaction = entry
    expense.save(update_fields=['transaction'])
    return entry


def repost_expense(expense, user=None):
    """Replace the treasury movement of an edited expense"""
    with transaction.atomic():
        if expense.transaction_id:
            reverse_transaction(expense.transaction)
            expense.transaction = None
        return post_expense(expense, user=user)
