from celery import shared_task


@shared_task
def reconcile_pending_payments():
    """Finalize approved milestones whose gateway orders are already paid"""
    from financeapp.services.payment_service import payment_service

    settled = payment_service.reconcile_pending()
    return f"Reconciled {settled} milestone payments"
