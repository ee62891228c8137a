import logging
from flask import Blueprint, request, jsonify
from flask_login import current_user
from salyte_beacon.models.report import Report, REPORT_TYPES, SEVERITIES, STATUSES, MAX_DESCRIPTION_LENGTH
from salyte_beacon.utils.auth_middleware import authorize, validate_json_data
from salyte_beacon.utils.errors import ValidationError, NotFoundError
from salyte_beacon.utils.rate_limiter import rate_limit
from salyte_beacon.utils.validators import (
    get_text, get_number, get_int, get_bool, get_pagination, pagination_info
)

logger = logging.getLogger(__name__)

report_bp = Blueprint('report', __name__)

STAFF_ROLES = ('government', 'ngo', 'admin')


def check_choice(value, choices, field):
    if value and value not in choices:
        raise ValidationError(
            f"{field.title()} must be one of: {', '.join(choices)}",
            error='Invalid filter',
            details={field: value}
        )
    return value


def find_report_or_404(report_id):
    report = Report.find_by_id(report_id)
    if not report:
        raise NotFoundError('Report not found', error='Report not found')
    return report


def can_view_contact(report):
    """Staff and the original reporter see contact details"""
    if not current_user.is_authenticated:
        return False
    return current_user.role in STAFF_ROLES or (report.user_id and report.user_id == current_user.id)


@report_bp.route('', methods=['GET'])
def list_reports():
    """List community reports with filters and pagination"""
    filters = {
        'status': check_choice(request.args.get('status'), STATUSES, 'status'),
        'severity': check_choice(request.args.get('severity'), SEVERITIES, 'severity'),
        'report_type': check_choice(request.args.get('type'), REPORT_TYPES, 'type'),
        'county': request.args.get('county')
    }
    page, limit = get_pagination(request.args)
    reports, total = Report.find(filters, page=page, limit=limit)

    return jsonify({
        'success': True,
        'reports': [report.to_dict() for report in reports],
        'pagination': pagination_info(page, limit, total)
    }), 200


@report_bp.route('', methods=['POST'])
@rate_limit(20, 60, scope='report')
@validate_json_data(['type', 'description', 'location_name'])
def submit_report():
    """Submit a community water issue report"""
    data = request.get_json()
    is_anonymous = get_bool(data, 'is_anonymous')

    report = Report(
        type=get_text(data, 'type'),
        description=get_text(data, 'description', max_length=MAX_DESCRIPTION_LENGTH),
        location_name=get_text(data, 'location_name'),
        severity=get_text(data, 'severity') or 'medium',
        title=get_text(data, 'title') or None,
        county=get_text(data, 'county'),
        latitude=get_number(data, 'latitude'),
        longitude=get_number(data, 'longitude'),
        affected_people=get_int(data, 'affected_people', 0),
        incident_date=get_text(data, 'incident_date'),
        reporter_name=get_text(data, 'reporter_name'),
        reporter_phone=get_text(data, 'reporter_phone'),
        reporter_email=get_text(data, 'reporter_email'),
        is_anonymous=is_anonymous,
        allow_follow_up=get_bool(data, 'allow_follow_up'),
        additional_info=get_text(data, 'additional_info'),
        reported_elsewhere=get_bool(data, 'reported_elsewhere'),
        user_id=current_user.id if current_user.is_authenticated else None
    )
    report.save()

    if current_user.is_authenticated:
        current_user.increment_activity('reports_submitted')

    logger.info("Report %s submitted (%s, priority %s)", report.tracking_id, report.type, report.priority)

    return jsonify({
        'success': True,
        'message': 'Report submitted successfully',
        'tracking_id': report.tracking_id,
        'report': report.to_dict()
    }), 201


@report_bp.route('/stats', methods=['GET'])
def get_report_stats():
    return jsonify({'success': True, 'stats': Report.get_statistics()}), 200


@report_bp.route('/<report_id>', methods=['GET'])
def get_report(report_id):
    """Get a report by id or tracking id"""
    report = find_report_or_404(report_id)
    return jsonify({
        'success': True,
        'report': report.to_dict(include_contact=can_view_contact(report))
    }), 200


@report_bp.route('/<report_id>/status', methods=['PATCH'])
@authorize(*STAFF_ROLES)
@validate_json_data(['status'])
def update_report_status(report_id):
    """Move a report through its workflow"""
    report = find_report_or_404(report_id)
    data = request.get_json()

    previous = report.status
    report.update_status(get_text(data, 'status'), changed_by=current_user.id, note=get_text(data, 'note'))

    logger.info("Report %s status %s -> %s by %s", report.tracking_id, previous, report.status, current_user.id)
    return jsonify({
        'success': True,
        'message': 'Report status updated',
        'report': report.to_dict(include_contact=True)
    }), 200
