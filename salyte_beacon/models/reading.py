from datetime import datetime, timedelta
import numpy as np
from pymongo import DESCENDING
from salyte_beacon.config.database import db_instance
from salyte_beacon.utils.errors import ValidationError
from salyte_beacon.utils.water_quality import (
    get_parameter_status, default_unit, normalize_parameter, SAFE, WARNING, CRITICAL
)

SOURCES = ('api', 'csv', 'sample')


class Reading:
    def __init__(self, type, value, unit=None, station_id=None, location_name=None, latitude=None,
                 longitude=None, source='api', user_id=None, timestamp=None, _id=None, status=None):
        self.id = str(_id) if _id else None
        self.type = type
        self.value = value
        self.unit = unit or default_unit(type)
        self.station_id = station_id
        self.location_name = location_name
        self.latitude = latitude
        self.longitude = longitude
        self.source = source
        self.user_id = user_id
        self.timestamp = timestamp or datetime.utcnow()

    @property
    def parameter(self):
        return normalize_parameter(self.type)

    @property
    def status(self):
        return get_parameter_status(self.value, self.type)

    def validate(self):
        errors = {}
        if not self.type or not str(self.type).strip():
            errors['type'] = 'Sensor type is required'
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            errors['value'] = 'Value must be a number'
        elif not np.isfinite(self.value):
            errors['value'] = 'Value must be finite'
        if self.latitude is not None and not -90 <= self.latitude <= 90:
            errors['latitude'] = 'Latitude must be between -90 and 90'
        if self.longitude is not None and not -180 <= self.longitude <= 180:
            errors['longitude'] = 'Longitude must be between -180 and 180'
        if self.source not in SOURCES:
            errors['source'] = 'Unknown reading source'

        if errors:
            raise ValidationError('Reading validation failed', details=errors)

    def _document(self):
        return {
            'type': self.type,
            'parameter': self.parameter,
            'value': float(self.value),
            'unit': self.unit,
            'status': self.status,
            'station_id': self.station_id,
            'location_name': self.location_name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'source': self.source,
            'user_id': self.user_id,
            'timestamp': self.timestamp
        }

    def save(self):
        """Save reading to database"""
        self.validate()
        db = db_instance.get_db()
        result = db.readings.insert_one(self._document())
        self.id = str(result.inserted_id)
        return self

    @staticmethod
    def insert_many(readings):
        """Validate and store a batch; returns the number stored"""
        for reading in readings:
            reading.validate()
        if not readings:
            return 0
        db = db_instance.get_db()
        result = db.readings.insert_many([reading._document() for reading in readings])
        for reading, inserted_id in zip(readings, result.inserted_ids):
            reading.id = str(inserted_id)
        return len(result.inserted_ids)

    @staticmethod
    def from_document(data):
        fields = {key: value for key, value in data.items() if key not in ('_id', 'parameter')}
        return Reading(_id=data['_id'], **fields)

    @staticmethod
    def find_recent(limit=20, station_id=None):
        db = db_instance.get_db()
        query = {'station_id': station_id} if station_id else {}
        cursor = db.readings.find(query).sort('timestamp', DESCENDING).limit(limit)
        return [Reading.from_document(data) for data in cursor]

    @staticmethod
    def parameter_summary(since=None):
        """Per-parameter count, mean, min, max and latest value"""
        db = db_instance.get_db()
        query = {'timestamp': {'$gte': since}} if since else {}

        values = {}
        latest = {}
        for data in db.readings.find(query).sort('timestamp', DESCENDING):
            parameter = data.get('parameter') or normalize_parameter(data['type'])
            values.setdefault(parameter, []).append(data['value'])
            latest.setdefault(parameter, data)

        summary = {}
        for parameter, series in values.items():
            array = np.array(series, dtype=float)
            mean = float(array.mean())
            summary[parameter] = {
                'count': int(array.size),
                'mean': round(mean, 2),
                'min': round(float(array.min()), 2),
                'max': round(float(array.max()), 2),
                'std': round(float(array.std()), 2),
                'latest': latest[parameter]['value'],
                'unit': latest[parameter].get('unit'),
                'status': get_parameter_status(mean, parameter)
            }
        return summary

    @staticmethod
    def status_counts(since=None):
        db = db_instance.get_db()
        query = {'timestamp': {'$gte': since}} if since else {}
        counts = {SAFE: 0, WARNING: 0, CRITICAL: 0}
        for data in db.readings.find(query, {'status': 1, 'type': 1, 'value': 1}):
            status = data.get('status') or get_parameter_status(data['value'], data['type'])
            counts[status] += 1
        return counts

    @staticmethod
    def daily_trends(days=30, now=None):
        """Safe/warning/critical reading counts for each of the last N days"""
        now = now or datetime.utcnow()
        start = datetime(now.year, now.month, now.day) - timedelta(days=days - 1)
        labels = [(start + timedelta(days=i)).strftime('%Y-%m-%d') for i in range(days)]

        series = {status: np.zeros(days, dtype=int) for status in (SAFE, WARNING, CRITICAL)}

        db = db_instance.get_db()
        cursor = db.readings.find({'timestamp': {'$gte': start}}, {'status': 1, 'type': 1, 'value': 1, 'timestamp': 1})
        for data in cursor:
            index = (data['timestamp'] - start).days
            if 0 <= index < days:
                status = data.get('status') or get_parameter_status(data['value'], data['type'])
                series[status][index] += 1

        return {
            'labels': labels,
            'safe': series[SAFE].tolist(),
            'warning': series[WARNING].tolist(),
            'critical': series[CRITICAL].tolist()
        }

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'parameter': self.parameter,
            'value': self.value,
            'unit': self.unit,
            'status': self.status,
            'station_id': self.station_id,
            'location_name': self.location_name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'source': self.source,
            'timestamp': self.timestamp
        }
