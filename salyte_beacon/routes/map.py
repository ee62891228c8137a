import logging
from flask import Blueprint, request, jsonify
from flask_login import current_user
from salyte_beacon.models.water_point import WaterPoint, MAP_LAYERS, QUALITY_LEVELS
from salyte_beacon.utils.auth_middleware import validate_json_data
from salyte_beacon.utils.errors import ValidationError
from salyte_beacon.utils.validators import get_text, get_number, get_int

logger = logging.getLogger(__name__)

map_bp = Blueprint('map', __name__)

TEST_PARAMETERS = ('ph', 'tds', 'turbidity')


@map_bp.route('/data', methods=['GET'])
def get_map_data():
    """Water points as a GeoJSON FeatureCollection"""
    quality = request.args.get('quality')
    qualities = [q.strip() for q in quality.split(',') if q.strip()] if quality else None
    if qualities:
        unknown = [q for q in qualities if q not in QUALITY_LEVELS]
        if unknown:
            raise ValidationError(
                f"Quality must be one of: {', '.join(QUALITY_LEVELS)}",
                error='Invalid filter',
                details={'quality': unknown}
            )

    points = WaterPoint.find_all(quality=qualities, point_type=request.args.get('type'))

    return jsonify({
        'type': 'FeatureCollection',
        'features': [point.to_feature() for point in points],
        'metadata': {'total': len(points)}
    }), 200


@map_bp.route('/layers', methods=['GET'])
def get_layers():
    """Map layers with the number of water points in each"""
    counts = WaterPoint.count_by_quality()
    layers = [
        dict(layer, id=layer_id, count=counts.get(layer['quality'], 0), visible=True)
        for layer_id, layer in MAP_LAYERS.items()
    ]
    return jsonify({'success': True, 'layers': layers, 'total': sum(counts.values())}), 200


@map_bp.route('/report', methods=['POST'])
@validate_json_data(['name', 'type', 'latitude', 'longitude'])
def report_water_point():
    """Add a water point to the map"""
    data = request.get_json()

    test_results = data.get('test_results') or {}
    if not isinstance(test_results, dict):
        raise ValidationError('Test results must be an object', error='Invalid field')

    point = WaterPoint(
        name=get_text(data, 'name'),
        type=get_text(data, 'type'),
        latitude=get_number(data, 'latitude', required=True),
        longitude=get_number(data, 'longitude', required=True),
        quality=get_text(data, 'quality') or None,
        description=get_text(data, 'description'),
        test_results={key: get_number(test_results, key) for key in TEST_PARAMETERS},
        people_served=get_int(data, 'people_served', 0),
        reported_by=current_user.id if current_user.is_authenticated else None
    )
    point.save()

    logger.info("Water point %s reported (%s)", point.id, point.quality)
    return jsonify({
        'success': True,
        'message': 'Water point added successfully',
        'feature': point.to_feature()
    }), 201
