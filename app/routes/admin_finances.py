"""
Finance routes for school admins: fee structures and student invoices.

Amounts are Decimal end to end and serialized as two-place strings.
"""

from flask import Blueprint, abort, current_app, g, jsonify, request
from sqlalchemy.exc import IntegrityError

from app.auth import get_owned_or_abort, school_admin_required
from app.errors import conflict_from_integrity_error, error_response, validation_error
from app.extensions import db
from app.models import FeeStructure, Invoice, InvoiceLineItem, PaymentStatus, Student, TermPeriod
from app.utils.constants import NO_CHANGES_MESSAGE
from app.utils.helpers import get_json_payload, query_int, school_today
from app.utils.invoicing import invoice_total, line_amount, next_invoice_number, to_money
from forms import FeeStructureForm, InvoiceForm, InvoiceUpdateForm

finances_bp = Blueprint('finances', __name__, url_prefix='/api/school-admin/finances')

DUPLICATE_FEE_STRUCTURE = "A fee structure with this name, academic year and term already exists."


def _enum_arg(enum_cls, name):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        abort(400, description=f"Invalid {name}: {value}.")


def _fee_structure_exists(name, academic_year, term, exclude_id=None):
    query = FeeStructure.query.filter_by(
        school_id=g.school_id, name=name, academic_year=academic_year, term=term,
    )
    if exclude_id is not None:
        query = query.filter(FeeStructure.id != exclude_id)
    return query.first() is not None


# -------------------- FEE STRUCTURES --------------------

@finances_bp.route('/fee-structures', methods=['GET'])
@school_admin_required
def list_fee_structures():
    query = FeeStructure.query.filter(FeeStructure.school_id == g.school_id)
    academic_year = request.args.get('academicYear')
    if academic_year:
        query = query.filter(FeeStructure.academic_year == academic_year)
    term = _enum_arg(TermPeriod, 'term')
    if term:
        query = query.filter(FeeStructure.term == term)
    fee_structures = query.order_by(FeeStructure.academic_year.desc(), FeeStructure.name).all()
    return jsonify([fee.to_dict() for fee in fee_structures])


@finances_bp.route('/fee-structures', methods=['POST'])
@school_admin_required
def create_fee_structure():
    form = FeeStructureForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    term = TermPeriod(form.term.data) if form.term.data else None
    if _fee_structure_exists(form.name.data, form.academic_year.data, term):
        return error_response(DUPLICATE_FEE_STRUCTURE, 409)

    fee_structure = FeeStructure(
        school_id=g.school_id,
        name=form.name.data,
        description=form.description.data,
        amount=to_money(form.amount.data),
        academic_year=form.academic_year.data,
        term=term,
        frequency=form.frequency.data,
    )
    db.session.add(fee_structure)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, DUPLICATE_FEE_STRUCTURE)

    current_app.logger.info(f"Fee structure {fee_structure.id} created in school {g.school_id}")
    return jsonify(fee_structure.to_dict()), 201


@finances_bp.route('/fee-structures/<int:fee_structure_id>', methods=['GET'])
@school_admin_required
def get_fee_structure(fee_structure_id):
    fee_structure = get_owned_or_abort(FeeStructure, fee_structure_id, "Fee structure")
    return jsonify(fee_structure.to_dict())


@finances_bp.route('/fee-structures/<int:fee_structure_id>', methods=['PATCH'])
@school_admin_required
def update_fee_structure(fee_structure_id):
    fee_structure = get_owned_or_abort(FeeStructure, fee_structure_id, "Fee structure")
    form = FeeStructureForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    if 'term' in changes:
        changes['term'] = TermPeriod(changes['term']) if changes['term'] else None
    if 'amount' in changes:
        changes['amount'] = to_money(changes['amount'])

    name = changes.get('name', fee_structure.name)
    academic_year = changes.get('academic_year', fee_structure.academic_year)
    term = changes['term'] if 'term' in changes else fee_structure.term
    if _fee_structure_exists(name, academic_year, term, exclude_id=fee_structure.id):
        return error_response(DUPLICATE_FEE_STRUCTURE, 409)

    for attr, value in changes.items():
        setattr(fee_structure, attr, value)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, DUPLICATE_FEE_STRUCTURE)

    return jsonify(fee_structure.to_dict())


@finances_bp.route('/fee-structures/<int:fee_structure_id>', methods=['DELETE'])
@school_admin_required
def delete_fee_structure(fee_structure_id):
    """Delete a fee structure. Invoice lines that used it keep their amounts."""
    fee_structure = get_owned_or_abort(FeeStructure, fee_structure_id, "Fee structure")
    InvoiceLineItem.query.filter_by(fee_structure_id=fee_structure.id).update(
        {InvoiceLineItem.fee_structure_id: None}, synchronize_session=False,
    )
    db.session.delete(fee_structure)
    db.session.commit()
    current_app.logger.info(f"Fee structure {fee_structure_id} deleted from school {g.school_id}")
    return jsonify({"message": "Fee structure deleted successfully."})


# -------------------- INVOICES --------------------

@finances_bp.route('/invoices', methods=['GET'])
@school_admin_required
def list_invoices():
    query = Invoice.query.filter(Invoice.school_id == g.school_id)
    status = _enum_arg(PaymentStatus, 'status')
    if status:
        query = query.filter(Invoice.status == status)
    student_id = query_int('studentId')
    if student_id is not None:
        query = query.filter(Invoice.student_id == student_id)
    invoices = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()
    return jsonify([invoice.to_dict() for invoice in invoices])


@finances_bp.route('/invoices', methods=['POST'])
@school_admin_required
def create_invoice():
    """
    Issue an invoice to a student.

    The invoice and all of its line items are written in one transaction.
    The total is the sum of quantity * unit price over the line items.
    """
    form = InvoiceForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    student = Student.query.filter_by(id=form.student_id.data, school_id=g.school_id).first()
    if student is None:
        return error_response("Student not found in your school.", 404)

    fee_structure_ids = {
        item.fee_structure_id.data for item in form.line_item_forms
        if item.fee_structure_id.data is not None
    }
    if fee_structure_ids:
        owned = {
            fee_id for (fee_id,) in db.session.query(FeeStructure.id).filter(
                FeeStructure.school_id == g.school_id,
                FeeStructure.id.in_(fee_structure_ids),
            )
        }
        invalid = sorted(fee_structure_ids - owned)
        if invalid:
            return error_response(
                f"Invalid fee structure ID(s) for this school: {', '.join(str(i) for i in invalid)}.", 400
            )

    issue_date = form.issue_date.data or school_today(g.school_admin.school.timezone)
    if form.due_date.data < issue_date:
        return validation_error({"dueDate": ["Due date cannot be before the issue date."]})

    lines = [
        (item.quantity.data or 1, item.unit_price.data, item)
        for item in form.line_item_forms
    ]
    invoice = Invoice(
        school_id=g.school_id,
        student_id=student.id,
        invoice_number=next_invoice_number(g.school_id, issue_date),
        issue_date=issue_date,
        due_date=form.due_date.data,
        total_amount=invoice_total((quantity, unit_price) for quantity, unit_price, _ in lines),
        paid_amount=to_money(0),
        status=PaymentStatus.PENDING,
        notes=form.notes.data,
        academic_year=form.academic_year.data,
        term=TermPeriod(form.term.data),
    )
    for quantity, unit_price, item in lines:
        invoice.line_items.append(InvoiceLineItem(
            student_id=student.id,
            fee_structure_id=item.fee_structure_id.data,
            description=item.description.data,
            quantity=quantity,
            unit_price=to_money(unit_price),
            amount=line_amount(quantity, unit_price),
        ))

    db.session.add(invoice)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "Invoice number already taken. Please retry.")

    current_app.logger.info(
        f"Invoice {invoice.invoice_number} ({invoice.total_amount}) issued to student {student.id} in school {g.school_id}"
    )
    return jsonify(invoice.to_dict()), 201


@finances_bp.route('/invoices/<int:invoice_id>', methods=['GET'])
@school_admin_required
def get_invoice(invoice_id):
    invoice = get_owned_or_abort(Invoice, invoice_id, "Invoice")
    return jsonify(invoice.to_dict())


@finances_bp.route('/invoices/<int:invoice_id>', methods=['PATCH'])
@school_admin_required
def update_invoice(invoice_id):
    """Change an invoice's status (e.g. CANCELLED), notes or paid amount."""
    invoice = get_owned_or_abort(Invoice, invoice_id, "Invoice")
    form = InvoiceUpdateForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    # Status and paid amount are required columns; null keeps the current value
    for attr in ('status', 'paid_amount'):
        if changes.get(attr, True) is None:
            changes.pop(attr)
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    if 'status' in changes:
        changes['status'] = PaymentStatus(changes['status'])
    if 'paid_amount' in changes:
        changes['paid_amount'] = to_money(changes['paid_amount'])
        if changes['paid_amount'] > invoice.total_amount:
            return validation_error({"paidAmount": ["Paid amount cannot exceed the invoice total."]})

    for attr, value in changes.items():
        setattr(invoice, attr, value)
    db.session.commit()

    current_app.logger.info(f"Invoice {invoice.invoice_number} updated: {sorted(changes)}")
    return jsonify(invoice.to_dict())
