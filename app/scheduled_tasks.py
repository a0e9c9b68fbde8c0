"""
Scheduled background tasks for the School Portal.

Contains periodic tasks that run in the background to maintain system state.
"""

import logging


def mark_overdue_invoices_job():
    """
    Mark unpaid invoices whose due date has passed as OVERDUE.

    "Today" is taken in each school's own timezone, so an invoice due on
    the 5th only becomes overdue once the 6th has begun at that school.

    Returns:
        int: number of invoices marked overdue
    """
    # Import here to avoid circular imports
    from app.extensions import db
    from app.models import Invoice, PaymentStatus, School
    from app.utils.helpers import school_today

    logger = logging.getLogger('scheduled_tasks')
    logger.info("Starting overdue invoice job")

    marked = 0
    try:
        for school in School.query.order_by(School.id).all():
            today = school_today(school.timezone)
            invoices = Invoice.query.filter(
                Invoice.school_id == school.id,
                Invoice.status.in_((PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID)),
                Invoice.due_date < today,
            ).all()
            for invoice in invoices:
                invoice.status = PaymentStatus.OVERDUE
                logger.info(f"Invoice {invoice.invoice_number} (school {school.id}) is overdue")
            marked += len(invoices)

        db.session.commit()
        logger.info(f"Overdue invoice job completed. Marked {marked} invoices overdue")
    except Exception as e:
        logger.error(f"Overdue invoice job failed: {e}", exc_info=True)
        db.session.rollback()
        raise

    return marked


def init_scheduled_tasks(app):
    """
    Initialize and start scheduled tasks.

    Args:
        app: Flask application instance
    """
    from app.extensions import scheduler

    logger = logging.getLogger('scheduled_tasks')
    hours = app.config.get("OVERDUE_CHECK_INTERVAL_HOURS", 6)

    # Wrapper function that runs the job with Flask app context
    def run_with_context():
        with app.app_context():
            mark_overdue_invoices_job()

    if not scheduler.running:
        scheduler.add_job(
            func=run_with_context,
            trigger='interval',
            hours=hours,
            id='mark_overdue_invoices',
            name='Mark overdue invoices',
            replace_existing=True,
            max_instances=1  # Prevent overlapping executions
        )

        scheduler.start()
        logger.info(f"Scheduled tasks initialized. Overdue invoices are checked every {hours} hours.")
    else:
        logger.info("Scheduler already running")
