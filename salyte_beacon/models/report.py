import secrets
from datetime import datetime, timedelta
from bson import ObjectId
from pymongo import DESCENDING
from salyte_beacon.config.database import db_instance
from salyte_beacon.models.user import to_object_id, is_valid_email
from salyte_beacon.utils.errors import ValidationError

REPORT_TYPES = ('contamination', 'shortage', 'quality', 'infrastructure', 'other')
SEVERITIES = ('low', 'medium', 'high')
STATUSES = ('submitted', 'investigating', 'in-progress', 'resolved', 'rejected')
MAX_DESCRIPTION_LENGTH = 2000

TITLE_TEMPLATES = {
    'contamination': 'Water Contamination in {}',
    'shortage': 'Water Shortage in {}',
    'quality': 'Water Quality Issues in {}',
    'infrastructure': 'Infrastructure Problem in {}'
}


def calculate_priority(report_type, severity):
    """urgent for contamination or high severity, high for medium severity"""
    if report_type == 'contamination' or severity == 'high':
        return 'urgent'
    if severity == 'medium':
        return 'high'
    return 'normal'


def generate_title(report_type, location_name):
    template = TITLE_TEMPLATES.get(report_type, 'Water Issue in {}')
    return template.format(location_name)


def generate_tracking_id(now=None):
    now = now or datetime.utcnow()
    return f"SB-{now.strftime('%Y%m%d')}-{secrets.token_hex(3).upper()}"


def format_response_time(delta):
    hours = int(delta.total_seconds() // 3600)
    return f'{hours}h' if hours < 24 else f'{hours // 24}d'


class Report:
    def __init__(self, type, description, location_name, severity='medium', title=None, county=None,
                 latitude=None, longitude=None, affected_people=0, incident_date=None,
                 reporter_name=None, reporter_phone=None, reporter_email=None, is_anonymous=False,
                 allow_follow_up=False, additional_info=None, reported_elsewhere=False,
                 status='submitted', priority=None, tracking_id=None, user_id=None,
                 _id=None, submitted_at=None, resolved_at=None, updated_at=None, status_history=None):
        self.id = str(_id) if _id else None
        self.type = type
        self.description = description
        self.location_name = location_name
        self.severity = severity
        self.title = title or generate_title(type, location_name)
        self.county = county
        self.latitude = latitude
        self.longitude = longitude
        self.affected_people = affected_people or 0
        self.incident_date = incident_date
        self.is_anonymous = is_anonymous
        # Anonymous reports never keep contact details
        self.reporter_name = None if is_anonymous else reporter_name
        self.reporter_phone = None if is_anonymous else reporter_phone
        self.reporter_email = None if is_anonymous else reporter_email
        self.allow_follow_up = allow_follow_up
        self.additional_info = additional_info
        self.reported_elsewhere = reported_elsewhere
        self.status = status
        self.priority = priority or calculate_priority(type, severity)
        self.submitted_at = submitted_at or datetime.utcnow()
        self.tracking_id = tracking_id or generate_tracking_id(self.submitted_at)
        self.user_id = user_id
        self.resolved_at = resolved_at
        self.updated_at = updated_at or self.submitted_at
        self.status_history = status_history or []

    def validate(self):
        errors = {}
        if self.type not in REPORT_TYPES:
            errors['type'] = f"Type must be one of: {', '.join(REPORT_TYPES)}"
        if self.severity not in SEVERITIES:
            errors['severity'] = f"Severity must be one of: {', '.join(SEVERITIES)}"
        if self.status not in STATUSES:
            errors['status'] = f"Status must be one of: {', '.join(STATUSES)}"
        if not self.description or not str(self.description).strip():
            errors['description'] = 'Description is required'
        elif len(self.description) > MAX_DESCRIPTION_LENGTH:
            errors['description'] = f'Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters'
        if not self.location_name or not str(self.location_name).strip():
            errors['location_name'] = 'Location name is required'
        if self.latitude is not None and (
                not isinstance(self.latitude, (int, float)) or not -90 <= self.latitude <= 90):
            errors['latitude'] = 'Latitude must be between -90 and 90'
        if self.longitude is not None and (
                not isinstance(self.longitude, (int, float)) or not -180 <= self.longitude <= 180):
            errors['longitude'] = 'Longitude must be between -180 and 180'
        if not isinstance(self.affected_people, int) or self.affected_people < 0:
            errors['affected_people'] = 'Affected people must be a non-negative integer'
        if self.reporter_email and not is_valid_email(self.reporter_email):
            errors['reporter_email'] = 'Please provide a valid email address'

        if errors:
            raise ValidationError('Report validation failed', details=errors)

    def save(self):
        """Save report to database"""
        self.validate()
        db = db_instance.get_db()
        self.updated_at = datetime.utcnow()
        report_data = {
            'tracking_id': self.tracking_id,
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'location_name': self.location_name,
            'county': self.county,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'severity': self.severity,
            'affected_people': self.affected_people,
            'incident_date': self.incident_date,
            'reporter_name': self.reporter_name,
            'reporter_phone': self.reporter_phone,
            'reporter_email': self.reporter_email,
            'is_anonymous': self.is_anonymous,
            'allow_follow_up': self.allow_follow_up,
            'additional_info': self.additional_info,
            'reported_elsewhere': self.reported_elsewhere,
            'status': self.status,
            'priority': self.priority,
            'user_id': self.user_id,
            'submitted_at': self.submitted_at,
            'resolved_at': self.resolved_at,
            'updated_at': self.updated_at,
            'status_history': self.status_history
        }

        if self.id:
            db.reports.update_one({'_id': ObjectId(self.id)}, {'$set': report_data})
        else:
            result = db.reports.insert_one(report_data)
            self.id = str(result.inserted_id)

        return self

    def update_status(self, status, changed_by=None, note=None):
        """Move the report to a new status and record the change"""
        if status not in STATUSES:
            raise ValidationError(
                f"Status must be one of: {', '.join(STATUSES)}",
                error='Invalid status'
            )

        now = datetime.utcnow()
        self.status_history.append({
            'from': self.status,
            'to': status,
            'changed_by': changed_by,
            'note': note,
            'timestamp': now
        })
        self.status = status
        self.resolved_at = now if status == 'resolved' else None
        return self.save()

    @staticmethod
    def from_document(data):
        fields = {key: value for key, value in data.items() if key != '_id'}
        return Report(_id=data['_id'], **fields)

    @staticmethod
    def find_by_id(report_id):
        """Find by database id or tracking id"""
        db = db_instance.get_db()
        object_id = to_object_id(report_id)
        data = db.reports.find_one({'_id': object_id}) if object_id else None
        if not data:
            data = db.reports.find_one({'tracking_id': report_id})
        return Report.from_document(data) if data else None

    @staticmethod
    def build_query(status=None, severity=None, report_type=None, county=None, user_id=None):
        query = {}
        if status:
            query['status'] = status
        if severity:
            query['severity'] = severity
        if report_type:
            query['type'] = report_type
        if county:
            query['county'] = county
        if user_id:
            query['user_id'] = user_id
        return query

    @staticmethod
    def find(filters=None, page=1, limit=20):
        """Return (reports, total), newest first"""
        db = db_instance.get_db()
        query = Report.build_query(**(filters or {}))
        total = db.reports.count_documents(query)
        cursor = db.reports.find(query).sort('submitted_at', DESCENDING)
        cursor = cursor.skip((page - 1) * limit).limit(limit)
        return [Report.from_document(data) for data in cursor], total

    @staticmethod
    def calculate_statistics(reports, now=None):
        """Headline numbers for a list of reports"""
        now = now or datetime.utcnow()
        last_month = now - timedelta(days=30)

        stats = {
            'total': len(reports),
            'resolved': sum(1 for r in reports if r.status == 'resolved'),
            'critical': sum(1 for r in reports if r.severity == 'high' or r.priority == 'urgent'),
            'recent_reports': sum(1 for r in reports if r.submitted_at > last_month),
            'avg_response_time': Report.average_response_time(reports)
        }
        for report_type in REPORT_TYPES:
            stats[report_type] = sum(1 for r in reports if r.type == report_type)
        return stats

    @staticmethod
    def average_response_time(reports):
        resolved = [r for r in reports if r.status == 'resolved' and r.resolved_at]
        if not resolved:
            return '24h'

        total = sum((r.resolved_at - r.submitted_at for r in resolved), timedelta())
        return format_response_time(total / len(resolved))

    @staticmethod
    def get_statistics():
        db = db_instance.get_db()
        reports = [Report.from_document(data) for data in db.reports.find()]
        return Report.calculate_statistics(reports)

    def to_dict(self, include_contact=False):
        """Convert report to dictionary; contact details only on request"""
        report = {
            'id': self.id,
            'tracking_id': self.tracking_id,
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'location_name': self.location_name,
            'county': self.county,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'severity': self.severity,
            'affected_people': self.affected_people,
            'incident_date': self.incident_date,
            'is_anonymous': self.is_anonymous,
            'status': self.status,
            'priority': self.priority,
            'submitted_at': self.submitted_at,
            'resolved_at': self.resolved_at,
            'updated_at': self.updated_at
        }

        if include_contact:
            report.update({
                'reporter_name': self.reporter_name,
                'reporter_phone': self.reporter_phone,
                'reporter_email': self.reporter_email,
                'allow_follow_up': self.allow_follow_up,
                'additional_info': self.additional_info,
                'reported_elsewhere': self.reported_elsewhere,
                'status_history': self.status_history
            })

        return report
