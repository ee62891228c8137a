import logging
from flask import Blueprint, request, jsonify
from flask_login import current_user
from salyte_beacon.models.sensor import Sensor, SORT_OPTIONS
from salyte_beacon.models.reading import Reading
from salyte_beacon.utils.auth_middleware import check_api_quota, require_permission, validate_json_data
from salyte_beacon.utils.errors import ValidationError, NotFoundError
from salyte_beacon.utils.validators import get_text, get_number, get_int, get_bool, get_pagination, pagination_info

logger = logging.getLogger(__name__)

sensors_bp = Blueprint('sensors', __name__)


def marketplace_filters(args):
    return {
        'search': get_text(args, 'search'),
        'sensor_type': get_text(args, 'type'),
        'vendor': get_text(args, 'vendor'),
        'min_price': get_number(args, 'min_price'),
        'max_price': get_number(args, 'max_price'),
        'min_rating': get_number(args, 'min_rating'),
        'in_stock': get_bool(args, 'in_stock'),
        'fast_shipping': get_bool(args, 'fast_shipping')
    }


@sensors_bp.route('', methods=['GET'])
def list_sensors():
    """Marketplace listing with filters, sorting and pagination"""
    filters = marketplace_filters(request.args)
    sort = request.args.get('sort', 'relevance')
    if sort not in SORT_OPTIONS:
        raise ValidationError(
            f"Sort must be one of: {', '.join(SORT_OPTIONS)}",
            error='Invalid sort option'
        )

    page, limit = get_pagination(request.args, default_limit=12)
    sensors, total = Sensor.search(filters, sort=sort, page=page, limit=limit)

    return jsonify({
        'success': True,
        'sensors': [sensor.to_dict() for sensor in sensors],
        'pagination': pagination_info(page, limit, total),
        'filters': {
            'types': Sensor.list_types(),
            'sort_options': list(SORT_OPTIONS)
        }
    }), 200


@sensors_bp.route('/search', methods=['GET'])
def search_sensors():
    """Free text search over the marketplace"""
    query = get_text(request.args, 'q')
    if not query:
        raise ValidationError('Search query is required', error='Missing query')

    page, limit = get_pagination(request.args, default_limit=12)
    sensors, total = Sensor.search({'search': query}, page=page, limit=limit)

    return jsonify({
        'success': True,
        'query': query,
        'sensors': [sensor.to_dict() for sensor in sensors],
        'pagination': pagination_info(page, limit, total)
    }), 200


@sensors_bp.route('/<sensor_id>', methods=['GET'])
def get_sensor(sensor_id):
    sensor = Sensor.find_by_id(sensor_id)
    if not sensor:
        raise NotFoundError('Sensor not found')
    return jsonify({'success': True, 'sensor': sensor.to_dict()}), 200


@sensors_bp.route('', methods=['POST'])
@check_api_quota
@validate_json_data(['type', 'value'])
def submit_reading():
    """Submit a single sensor reading"""
    data = request.get_json()

    reading = Reading(
        type=get_text(data, 'type'),
        value=get_number(data, 'value', required=True),
        unit=get_text(data, 'unit'),
        station_id=get_text(data, 'station_id'),
        location_name=get_text(data, 'location_name'),
        latitude=get_number(data, 'latitude'),
        longitude=get_number(data, 'longitude'),
        source='api',
        user_id=current_user.id if current_user.is_authenticated else None
    )
    reading.save()

    if current_user.is_authenticated:
        current_user.increment_activity('data_points_contributed')

    logger.info("Reading stored: %s=%s (%s)", reading.parameter, reading.value, reading.status)

    return jsonify({
        'success': True,
        'message': 'Reading recorded successfully',
        'reading': reading.to_dict()
    }), 201


@sensors_bp.route('/products', methods=['POST'])
@require_permission('sensors', 'write')
@validate_json_data(['name', 'type', 'price'])
def create_product():
    """Add a product to the marketplace"""
    data = request.get_json()

    specifications = data.get('specifications') or {}
    if not isinstance(specifications, dict):
        raise ValidationError('Specifications must be an object', error='Invalid field')

    sensor = Sensor(
        name=get_text(data, 'name'),
        type=get_text(data, 'type'),
        price=get_number(data, 'price', required=True),
        description=get_text(data, 'description'),
        original_price=get_number(data, 'original_price'),
        rating=get_number(data, 'rating') or 0,
        reviews=get_int(data, 'reviews', 0),
        vendor=get_text(data, 'vendor'),
        vendor_link=get_text(data, 'vendor_link'),
        image_url=get_text(data, 'image_url'),
        in_stock=get_bool(data, 'in_stock', True),
        fast_shipping=get_bool(data, 'fast_shipping'),
        specifications=specifications
    )
    sensor.save()

    logger.info("Sensor product %s added by user %s", sensor.id, current_user.id)
    return jsonify({'success': True, 'sensor': sensor.to_dict()}), 201
