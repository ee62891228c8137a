import logging
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user
from salyte_beacon.models.reading import Reading
from salyte_beacon.models.report import Report
from salyte_beacon.models.user import User
from salyte_beacon.models.water_point import WaterPoint
from salyte_beacon.utils.auth_middleware import login_required_api, check_api_quota
from salyte_beacon.utils.errors import ValidationError
from salyte_beacon.utils.file_handler import FileHandler
from salyte_beacon.utils.validators import get_int

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint('dashboard', __name__)

MAX_TREND_DAYS = 365
MAX_REPORTED_ROW_ERRORS = 50


@dashboard_bp.route('', methods=['GET'])
def dashboard_status():
    return jsonify({
        'success': True,
        'message': 'Dashboard module is running',
        'endpoints': ['/stats', '/trends', '/upload']
    }), 200


@dashboard_bp.route('/stats', methods=['GET'])
def get_stats():
    """Headline numbers for the dashboard cards"""
    since = datetime.utcnow() - timedelta(days=30)
    status_counts = Reading.status_counts()
    total_readings = sum(status_counts.values())

    return jsonify({
        'success': True,
        'stats': {
            'readings': {
                'total': total_readings,
                'by_status': status_counts,
                'safe_percentage': round(status_counts['safe'] / total_readings * 100, 1) if total_readings else 0,
                'parameters': Reading.parameter_summary(since=since)
            },
            'water_points': WaterPoint.count_by_quality(),
            'reports': Report.get_statistics(),
            'users': User.get_user_stats()
        },
        'recent_readings': [reading.to_dict() for reading in Reading.find_recent(limit=10)],
        'generated_at': datetime.utcnow()
    }), 200


@dashboard_bp.route('/trends', methods=['GET'])
def get_trends():
    """Per-day reading status counts"""
    days = get_int(request.args, 'days', 30)
    if not 1 <= days <= MAX_TREND_DAYS:
        raise ValidationError(f'Days must be between 1 and {MAX_TREND_DAYS}', error='Invalid range')

    return jsonify({'success': True, 'days': days, 'trends': Reading.daily_trends(days=days)}), 200


@dashboard_bp.route('/upload', methods=['POST'])
@login_required_api
@check_api_quota
def upload_readings():
    """Import sensor readings from a CSV file"""
    if 'file' not in request.files:
        raise ValidationError('No file provided', error='Missing file')

    file = request.files['file']
    if file.filename == '':
        raise ValidationError('No file selected', error='Missing file')

    file_handler = FileHandler(current_app.config['UPLOAD_FOLDER'])
    if not file_handler.is_allowed_file(file.filename):
        raise ValidationError('Only CSV files are supported', error='Invalid file type')

    file_path = file_handler.save_file(file)
    try:
        rows, row_errors = file_handler.parse_readings(file_path)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValidationError(str(e), error='Invalid CSV file')
    finally:
        file_handler.cleanup_file(file_path)

    readings = [Reading(source='csv', user_id=current_user.id, **row) for row in rows]
    imported = Reading.insert_many(readings)
    if imported:
        current_user.increment_activity('data_points_contributed', imported)

    logger.info(
        "CSV import by user %s: %d readings stored, %d rows rejected",
        current_user.id, imported, len(row_errors)
    )

    return jsonify({
        'success': True,
        'message': f'Imported {imported} readings',
        'filename': file.filename,
        'imported': imported,
        'rejected': len(row_errors),
        'errors': row_errors[:MAX_REPORTED_ROW_ERRORS]
    }), 200
