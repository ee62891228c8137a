import math
from datetime import datetime
from bson import ObjectId
from salyte_beacon.config.database import db_instance
from salyte_beacon.models.user import to_object_id
from salyte_beacon.utils.errors import ValidationError
from salyte_beacon.utils.water_quality import quality_from_test_results, evaluate_test_results

POINT_TYPES = ('borehole', 'well', 'spring', 'tap', 'river', 'lake', 'kiosk', 'treatment_plant', 'other')
QUALITY_LEVELS = ('safe', 'moderate', 'unsafe', 'unknown')

# Map layers offered to clients, keyed by layer id
MAP_LAYERS = {
    'safe': {'name': 'Safe Sources', 'color': '#198754', 'quality': 'safe'},
    'moderate': {'name': 'Moderate Risk', 'color': '#ffc107', 'quality': 'moderate'},
    'unsafe': {'name': 'Unsafe Sources', 'color': '#dc3545', 'quality': 'unsafe'},
    'unknown': {'name': 'Untested Sources', 'color': '#6c757d', 'quality': 'unknown'}
}


class WaterPoint:
    def __init__(self, name, type, latitude, longitude, quality=None, description=None,
                 test_results=None, people_served=0, reported_by=None, _id=None,
                 created_at=None, updated_at=None):
        self.id = str(_id) if _id else None
        self.name = name
        self.type = type
        self.latitude = latitude
        self.longitude = longitude
        self.test_results = {k: v for k, v in (test_results or {}).items() if v is not None}
        # Derive quality from the test results when the reporter did not rate it
        self.quality = quality or quality_from_test_results(self.test_results)
        self.description = description
        self.people_served = people_served or 0
        self.reported_by = reported_by
        self.created_at = created_at or datetime.utcnow()
        self.updated_at = updated_at or self.created_at

    def validate(self):
        errors = {}
        if not self.name or not str(self.name).strip():
            errors['name'] = 'Name is required'
        if self.type not in POINT_TYPES:
            errors['type'] = f"Type must be one of: {', '.join(POINT_TYPES)}"
        if self.quality not in QUALITY_LEVELS:
            errors['quality'] = f"Quality must be one of: {', '.join(QUALITY_LEVELS)}"
        if not isinstance(self.latitude, (int, float)) or not -90 <= self.latitude <= 90:
            errors['latitude'] = 'Latitude must be between -90 and 90'
        if not isinstance(self.longitude, (int, float)) or not -180 <= self.longitude <= 180:
            errors['longitude'] = 'Longitude must be between -180 and 180'
        for parameter, value in self.test_results.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                errors[f'test_results.{parameter}'] = 'Test results must be numbers'
        if not isinstance(self.people_served, int) or self.people_served < 0:
            errors['people_served'] = 'People served must be a non-negative integer'

        if errors:
            raise ValidationError('Water point validation failed', details=errors)

    def save(self):
        """Save water point to database"""
        self.validate()
        db = db_instance.get_db()
        self.updated_at = datetime.utcnow()
        point_data = {
            'name': self.name,
            'type': self.type,
            'quality': self.quality,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'description': self.description,
            'test_results': self.test_results,
            'people_served': self.people_served,
            'reported_by': self.reported_by,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

        if self.id:
            db.water_points.update_one({'_id': ObjectId(self.id)}, {'$set': point_data})
        else:
            result = db.water_points.insert_one(point_data)
            self.id = str(result.inserted_id)

        return self

    @staticmethod
    def from_document(data):
        fields = {key: value for key, value in data.items() if key != '_id'}
        return WaterPoint(_id=data['_id'], **fields)

    @staticmethod
    def find_by_id(point_id):
        object_id = to_object_id(point_id)
        if not object_id:
            return None
        db = db_instance.get_db()
        data = db.water_points.find_one({'_id': object_id})
        return WaterPoint.from_document(data) if data else None

    @staticmethod
    def find_all(quality=None, point_type=None):
        db = db_instance.get_db()
        query = {}
        if quality:
            query['quality'] = {'$in': quality} if isinstance(quality, list) else quality
        if point_type:
            query['type'] = point_type
        return [WaterPoint.from_document(data) for data in db.water_points.find(query).sort('name', 1)]

    @staticmethod
    def count_by_quality():
        db = db_instance.get_db()
        counts = {level: 0 for level in QUALITY_LEVELS}
        for data in db.water_points.find({}, {'quality': 1}):
            counts[data.get('quality', 'unknown')] = counts.get(data.get('quality', 'unknown'), 0) + 1
        return counts

    def to_feature(self):
        """GeoJSON Feature; coordinates are [longitude, latitude]"""
        return {
            'type': 'Feature',
            'geometry': {
                'type': 'Point',
                'coordinates': [self.longitude, self.latitude]
            },
            'properties': {
                'id': self.id,
                'name': self.name,
                'type': self.type,
                'quality': self.quality,
                'description': self.description,
                'people_served': self.people_served,
                'test_results': self.test_results,
                'parameter_status': evaluate_test_results(self.test_results)['parameters'],
                'last_updated': self.updated_at.isoformat() if self.updated_at else None
            }
        }
