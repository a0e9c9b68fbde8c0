"""
Request payload forms for the School Portal API.

Every form here is fed from a JSON request body rather than an HTML form.
Field names in the body are camelCase (``firstName``); the Python attribute
names match the model columns they populate (``first_name``).
"""

from datetime import datetime, timezone
from decimal import Decimal

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, DecimalField, Field, IntegerField, PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, InputRequired, Length, NumberRange, Optional, Regexp, URL, ValidationError
from wtforms.widgets import TextInput

from app.models import DayOfWeek, Gender, PaymentStatus, TermPeriod
from app.utils.academic import is_valid_academic_year
from app.utils.constants import TIME_PATTERN
from app.utils.helpers import is_valid_timezone


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value):
    return value if value not in ('', None) else None


def _upper(value):
    return value.upper() if isinstance(value, str) else value


TEXT_FILTERS = [_strip, _blank_to_none]


def _enum_choices(enum_cls):
    return [(member.value, member.value) for member in enum_cls]


def _to_form_value(value):
    """Render a JSON scalar the way it would arrive in an HTML form."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


# -------------------- CUSTOM FIELDS AND VALIDATORS --------------------

class ISODateField(Field):
    """
    Date or datetime field accepting ``YYYY-MM-DD`` or full ISO-8601 strings.

    Datetimes are normalized to naive UTC, which is how they are stored.
    """
    widget = TextInput()

    def __init__(self, label=None, validators=None, with_time=False, **kwargs):
        super().__init__(label, validators, **kwargs)
        self.with_time = with_time

    def _value(self):
        if self.raw_data:
            return self.raw_data[0]
        return self.data.isoformat() if self.data else ''

    def process_formdata(self, valuelist):
        if not valuelist or not valuelist[0].strip():
            self.data = None
            return
        raw = valuelist[0].strip()
        try:
            parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
        except ValueError:
            self.data = None
            raise ValueError(self.gettext('Not a valid date value.'))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        self.data = parsed if self.with_time else parsed.date()


class AcademicYear:
    """Validates "YYYY-YYYY" with consecutive years, e.g. 2024-2025."""

    def __init__(self, message=None):
        self.message = message or "Academic year must be in YYYY-YYYY format with consecutive years (e.g., 2024-2025)."

    def __call__(self, form, field):
        if field.data and not is_valid_academic_year(field.data):
            raise ValidationError(self.message)


class Timezone:
    def __call__(self, form, field):
        if field.data and not is_valid_timezone(field.data):
            raise ValidationError(f"Unknown timezone '{field.data}'.")


class Positive:
    def __init__(self, message):
        self.message = message

    def __call__(self, form, field):
        if field.data is not None and (not field.data.is_finite() or field.data <= 0):
            raise ValidationError(self.message)


# -------------------- BASE FORM --------------------

class APIForm(FlaskForm):
    """
    Base class for forms built from a JSON object.

    With ``partial=True`` (PATCH requests) only the keys present in the body
    are validated and reported by changes(); absent keys leave the stored
    values untouched.
    """

    class Meta:
        csrf = False

    def __init__(self, payload=None, partial=False, **kwargs):
        payload = payload if isinstance(payload, dict) else {}
        formdata = MultiDict([
            (key, _to_form_value(value))
            for key, value in payload.items()
            if not isinstance(value, (dict, list))
        ])
        super().__init__(formdata=formdata, **kwargs)
        self.payload = payload
        self.partial = partial

    def provided(self, field_name):
        """True when the JSON body carried the given camelCase key."""
        return field_name in self.payload

    def _null_flag(self, field):
        # BooleanField reads "" as false, but a JSON null flag means "not given"
        return isinstance(field, BooleanField) and self.payload.get(field.name) is None

    def value_or(self, attr, default):
        field = self._fields[attr]
        if not self.provided(field.name) or self._null_flag(field):
            return default
        return field.data

    def validate(self, extra_validators=None):
        valid = super().validate(extra_validators=extra_validators)
        if valid or not self.partial:
            return valid
        for field in self:
            if not self.provided(field.name):
                field.errors = []
        return not any(field.errors for field in self)

    @property
    def json_errors(self):
        """Errors keyed by the JSON field name."""
        return {field.name: list(field.errors) for field in self if field.errors}

    def changes(self, *attrs):
        """
        Return {attribute: value} for the fields present in the body.

        Restrict to ``attrs`` when given.
        """
        return {
            attr: field.data
            for attr, field in self._fields.items()
            if self.provided(field.name) and not self._null_flag(field) and (not attrs or attr in attrs)
        }


# -------------------- AUTH --------------------

class LoginForm(APIForm):
    email = StringField('Email', validators=[DataRequired(), Email(message="Invalid email address.")], filters=[_strip])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required.")])
    callback_url = StringField('Callback URL', name='callbackUrl', validators=[Optional()], filters=TEXT_FILTERS)


# -------------------- SCHOOLS (SUPER ADMIN) --------------------

class SchoolForm(APIForm):
    name = StringField('Name', validators=[
        DataRequired(message="School name is required."),
        Length(min=3, message="School name must be at least 3 characters long."),
    ], filters=TEXT_FILTERS)
    school_email = StringField('School email', name='schoolEmail', validators=[
        DataRequired(message="School email is required."),
        Email(message="Invalid email address for school."),
    ], filters=TEXT_FILTERS)
    address = StringField('Address', validators=[Optional()], filters=TEXT_FILTERS)
    city = StringField('City', validators=[Optional()], filters=TEXT_FILTERS)
    state_or_region = StringField('State or region', name='stateOrRegion', validators=[Optional()], filters=TEXT_FILTERS)
    country = StringField('Country', validators=[Optional()], filters=TEXT_FILTERS)
    postal_code = StringField('Postal code', name='postalCode', validators=[Optional()], filters=TEXT_FILTERS)
    phone_number = StringField('Phone number', name='phoneNumber', validators=[Optional()], filters=TEXT_FILTERS)
    website = StringField('Website', validators=[Optional(), URL(message="Invalid URL for website.")], filters=TEXT_FILTERS)
    logo_url = StringField('Logo URL', name='logoUrl', validators=[Optional(), URL(message="Logo URL must be a valid URL.")], filters=TEXT_FILTERS)
    current_academic_year = StringField('Academic year', name='currentAcademicYear', validators=[Optional(), AcademicYear()], filters=TEXT_FILTERS)
    current_term = SelectField('Term', name='currentTerm', choices=_enum_choices(TermPeriod), validators=[Optional()], filters=[_blank_to_none])
    currency = StringField('Currency', validators=[
        Optional(), Length(min=3, max=3, message="Currency must be a 3-letter code."),
    ], filters=[_strip, _upper, _blank_to_none])
    timezone = StringField('Timezone', validators=[Optional(), Timezone()], filters=TEXT_FILTERS)
    is_active = BooleanField('Active', name='isActive')


class SchoolAdminAssignForm(APIForm):
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")], filters=TEXT_FILTERS)
    first_name = StringField('First name', name='firstName', validators=[DataRequired(message="First name is required.")], filters=TEXT_FILTERS)
    last_name = StringField('Last name', name='lastName', validators=[DataRequired(message="Last name is required.")], filters=TEXT_FILTERS)
    password = PasswordField('Password', validators=[
        DataRequired(message="Password is required."),
        Length(min=8, message="Password must be at least 8 characters."),
    ])


# -------------------- SCHOOL SETTINGS (SCHOOL ADMIN) --------------------

class SchoolSettingsForm(APIForm):
    current_academic_year = StringField('Academic year', name='currentAcademicYear', validators=[Optional(), AcademicYear()], filters=TEXT_FILTERS)
    current_term = SelectField('Term', name='currentTerm', choices=_enum_choices(TermPeriod), validators=[Optional()], filters=[_blank_to_none])
    phone_number = StringField('Phone number', name='phoneNumber', validators=[Optional()], filters=TEXT_FILTERS)
    website = StringField('Website', validators=[Optional(), URL(message="Invalid URL for website.")], filters=TEXT_FILTERS)
    logo_url = StringField('Logo URL', name='logoUrl', validators=[Optional(), URL(message="Logo URL must be a valid URL if provided.")], filters=TEXT_FILTERS)
    address = StringField('Address', validators=[Optional()], filters=TEXT_FILTERS)
    city = StringField('City', validators=[Optional()], filters=TEXT_FILTERS)
    state_or_region = StringField('State or region', name='stateOrRegion', validators=[Optional()], filters=TEXT_FILTERS)
    country = StringField('Country', validators=[Optional()], filters=TEXT_FILTERS)
    postal_code = StringField('Postal code', name='postalCode', validators=[Optional()], filters=TEXT_FILTERS)


# -------------------- TEACHERS --------------------

TEACHER_USER_FIELDS = ('email', 'first_name', 'last_name', 'phone_number', 'profile_picture', 'is_active')
TEACHER_PROFILE_FIELDS = ('teacher_id_number', 'date_of_joining', 'qualifications', 'specialization')


class TeacherForm(APIForm):
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")], filters=TEXT_FILTERS)
    first_name = StringField('First name', name='firstName', validators=[DataRequired(message="First name is required.")], filters=TEXT_FILTERS)
    last_name = StringField('Last name', name='lastName', validators=[DataRequired(message="Last name is required.")], filters=TEXT_FILTERS)
    password = PasswordField('Password', validators=[
        DataRequired(message="Password is required."),
        Length(min=6, message="Password must be at least 6 characters."),
    ])
    phone_number = StringField('Phone number', name='phoneNumber', validators=[Optional()], filters=TEXT_FILTERS)
    teacher_id_number = StringField('Teacher ID number', name='teacherIdNumber', validators=[Optional()], filters=TEXT_FILTERS)
    date_of_joining = ISODateField('Date of joining', name='dateOfJoining', validators=[Optional()])
    qualifications = TextAreaField('Qualifications', validators=[Optional()], filters=TEXT_FILTERS)
    specialization = StringField('Specialization', validators=[Optional()], filters=TEXT_FILTERS)
    profile_picture = StringField('Profile picture', name='profilePicture', validators=[
        Optional(), URL(message="Profile picture must be a valid URL if provided."),
    ], filters=TEXT_FILTERS)


class TeacherUpdateForm(TeacherForm):
    """Partial update of a teacher; password changes are not accepted here."""
    password = None
    is_active = BooleanField('Active', name='isActive')


# -------------------- STUDENTS --------------------

class StudentForm(APIForm):
    first_name = StringField('First name', name='firstName', validators=[DataRequired(message="First name is required.")], filters=TEXT_FILTERS)
    last_name = StringField('Last name', name='lastName', validators=[DataRequired(message="Last name is required.")], filters=TEXT_FILTERS)
    middle_name = StringField('Middle name', name='middleName', validators=[Optional()], filters=TEXT_FILTERS)
    student_id_number = StringField('Student ID number', name='studentIdNumber', validators=[
        DataRequired(message="Student ID number is required."),
    ], filters=TEXT_FILTERS)
    date_of_birth = ISODateField('Date of birth', name='dateOfBirth', validators=[InputRequired(message="Date of birth is required.")])
    gender = SelectField('Gender', choices=_enum_choices(Gender), validators=[DataRequired(message="Gender is required.")])
    enrollment_date = ISODateField('Enrollment date', name='enrollmentDate', validators=[Optional()])
    current_class_id = IntegerField('Class', name='currentClassId', validators=[Optional()])
    profile_picture_url = StringField('Profile picture', name='profilePictureUrl', validators=[
        Optional(), URL(message="Must be a valid URL if provided."),
    ], filters=TEXT_FILTERS)
    address = StringField('Address', validators=[Optional()], filters=TEXT_FILTERS)
    city = StringField('City', validators=[Optional()], filters=TEXT_FILTERS)
    state_or_region = StringField('State or region', name='stateOrRegion', validators=[Optional()], filters=TEXT_FILTERS)
    country = StringField('Country', validators=[Optional()], filters=TEXT_FILTERS)
    postal_code = StringField('Postal code', name='postalCode', validators=[Optional()], filters=TEXT_FILTERS)
    emergency_contact_name = StringField('Emergency contact', name='emergencyContactName', validators=[Optional()], filters=TEXT_FILTERS)
    emergency_contact_phone = StringField('Emergency phone', name='emergencyContactPhone', validators=[Optional()], filters=TEXT_FILTERS)
    blood_group = StringField('Blood group', name='bloodGroup', validators=[Optional(), Length(max=10)], filters=TEXT_FILTERS)
    allergies = TextAreaField('Allergies', validators=[Optional()], filters=TEXT_FILTERS)
    medical_notes = TextAreaField('Medical notes', name='medicalNotes', validators=[Optional()], filters=TEXT_FILTERS)
    is_active = BooleanField('Active', name='isActive')


# -------------------- SUBJECTS --------------------

class SubjectForm(APIForm):
    name = StringField('Name', validators=[DataRequired(message="Subject name is required.")], filters=TEXT_FILTERS)
    code = StringField('Code', validators=[Optional(), Length(max=20)], filters=TEXT_FILTERS)
    description = TextAreaField('Description', validators=[Optional()], filters=TEXT_FILTERS)


# -------------------- CLASSES --------------------

class ClassForm(APIForm):
    name = StringField('Name', validators=[DataRequired(message="Class name/level is required (e.g., Grade 1, JHS 2).")], filters=TEXT_FILTERS)
    section = StringField('Section', validators=[Optional()], filters=TEXT_FILTERS)
    academic_year = StringField('Academic year', name='academicYear', validators=[
        DataRequired(message="Academic year is required."), AcademicYear(),
    ], filters=TEXT_FILTERS)
    homeroom_teacher_id = IntegerField('Homeroom teacher', name='homeroomTeacherId', validators=[Optional()])


# -------------------- TIMETABLE --------------------

class TimetableSlotForm(APIForm):
    class_id = IntegerField('Class', name='classId', validators=[InputRequired(message="Class is required.")])
    subject_id = IntegerField('Subject', name='subjectId', validators=[InputRequired(message="Subject is required.")])
    teacher_id = IntegerField('Teacher', name='teacherId', validators=[InputRequired(message="Teacher is required.")])
    day_of_week = SelectField('Day', name='dayOfWeek', choices=_enum_choices(DayOfWeek), validators=[
        DataRequired(message="Invalid day of the week."),
    ])
    start_time = StringField('Start time', name='startTime', validators=[
        DataRequired(message="Start time is required."),
        Regexp(TIME_PATTERN, message="Invalid start time format. Use HH:MM."),
    ], filters=TEXT_FILTERS)
    end_time = StringField('End time', name='endTime', validators=[
        DataRequired(message="End time is required."),
        Regexp(TIME_PATTERN, message="Invalid end time format. Use HH:MM."),
    ], filters=TEXT_FILTERS)
    room = StringField('Room', validators=[Optional()], filters=TEXT_FILTERS)

    def validate_end_time(self, field):
        start = self.start_time.data
        # Zero-padded HH:MM strings order the same way as the times they encode
        if start and field.data and not self.start_time.errors and field.data <= start:
            raise ValidationError("End time must be after start time.")


# -------------------- ANNOUNCEMENTS --------------------

class AnnouncementForm(APIForm):
    title = StringField('Title', validators=[
        DataRequired(message="Title is required."),
        Length(min=3, message="Title must be at least 3 characters long."),
    ], filters=TEXT_FILTERS)
    content = TextAreaField('Content', validators=[
        DataRequired(message="Content is required."),
        Length(min=10, message="Content must be at least 10 characters long."),
    ], filters=TEXT_FILTERS)
    publish_date = ISODateField('Publish date', name='publishDate', with_time=True, validators=[Optional()])
    expiry_date = ISODateField('Expiry date', name='expiryDate', with_time=True, validators=[Optional()])
    audience = StringField('Audience', validators=[Optional()], filters=TEXT_FILTERS)
    is_published = BooleanField('Published', name='isPublished')

    def validate_expiry_date(self, field):
        if field.data and self.publish_date.data and field.data < self.publish_date.data:
            raise ValidationError("Expiry date cannot be before the publish date.")


# -------------------- FINANCES --------------------

class FeeStructureForm(APIForm):
    name = StringField('Name', validators=[
        DataRequired(message="Fee structure name is required."),
        Length(min=3, message="Fee structure name must be at least 3 characters."),
    ], filters=TEXT_FILTERS)
    description = TextAreaField('Description', validators=[Optional()], filters=TEXT_FILTERS)
    amount = DecimalField('Amount', places=2, validators=[
        InputRequired(message="Amount is required."),
        Positive("Amount must be positive."),
    ])
    academic_year = StringField('Academic year', name='academicYear', validators=[
        DataRequired(message="Academic year is required."), AcademicYear(),
    ], filters=TEXT_FILTERS)
    term = SelectField('Term', choices=_enum_choices(TermPeriod), validators=[Optional()], filters=[_blank_to_none])
    frequency = StringField('Frequency', validators=[
        DataRequired(message="Frequency is required (e.g., Termly, Annually, Monthly, One-time)."),
    ], filters=TEXT_FILTERS)


class InvoiceLineItemForm(APIForm):
    description = StringField('Description', validators=[DataRequired(message="Line item description is required.")], filters=TEXT_FILTERS)
    quantity = IntegerField('Quantity', default=1, validators=[
        Optional(), NumberRange(min=1, message="Quantity must be at least 1."),
    ])
    unit_price = DecimalField('Unit price', name='unitPrice', places=2, validators=[
        InputRequired(message="Unit price is required."),
        Positive("Unit price must be positive."),
    ])
    fee_structure_id = IntegerField('Fee structure', name='feeStructureId', validators=[Optional()])


class InvoiceForm(APIForm):
    student_id = IntegerField('Student', name='studentId', validators=[InputRequired(message="Student is required.")])
    academic_year = StringField('Academic year', name='academicYear', validators=[
        DataRequired(message="Academic year is required."), AcademicYear(),
    ], filters=TEXT_FILTERS)
    term = SelectField('Term', choices=_enum_choices(TermPeriod), validators=[DataRequired(message="Invalid term selected.")])
    issue_date = ISODateField('Issue date', name='issueDate', validators=[Optional()])
    due_date = ISODateField('Due date', name='dueDate', validators=[InputRequired(message="Due date is required.")])
    notes = TextAreaField('Notes', validators=[Optional()], filters=TEXT_FILTERS)

    def __init__(self, payload=None, partial=False, **kwargs):
        super().__init__(payload, partial=partial, **kwargs)
        raw_items = self.payload.get('lineItems')
        self.line_item_forms = [
            InvoiceLineItemForm(item if isinstance(item, dict) else {})
            for item in (raw_items if isinstance(raw_items, list) else [])
        ]
        self.line_item_errors = None

    def validate_due_date(self, field):
        if field.data and self.issue_date.data and field.data < self.issue_date.data:
            raise ValidationError("Due date cannot be before the issue date.")

    def validate(self, extra_validators=None):
        valid = super().validate(extra_validators=extra_validators)
        if not self.line_item_forms:
            self.line_item_errors = ["Invoice must have at least one line item."]
            return False
        items_valid = [item.validate() for item in self.line_item_forms]
        if not all(items_valid):
            self.line_item_errors = [item.json_errors for item in self.line_item_forms]
            return False
        return valid

    @property
    def json_errors(self):
        errors = super().json_errors
        if self.line_item_errors:
            errors['lineItems'] = self.line_item_errors
        return errors


class InvoiceUpdateForm(APIForm):
    status = SelectField('Status', choices=_enum_choices(PaymentStatus), validators=[DataRequired(message="Invalid status.")])
    notes = TextAreaField('Notes', validators=[Optional()], filters=TEXT_FILTERS)
    paid_amount = DecimalField('Paid amount', name='paidAmount', places=2, validators=[
        Optional(), NumberRange(min=Decimal('0'), message="Paid amount cannot be negative."),
    ])
