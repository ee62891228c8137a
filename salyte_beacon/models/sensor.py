import re
import math
from datetime import datetime
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from salyte_beacon.config.database import db_instance
from salyte_beacon.models.user import to_object_id
from salyte_beacon.utils.errors import ValidationError

SORT_OPTIONS = {
    'relevance': [('_id', ASCENDING)],
    'price-low': [('price', ASCENDING)],
    'price-high': [('price', DESCENDING)],
    'rating': [('rating', DESCENDING)],
    'newest': [('date_added', DESCENDING)]
}


class Sensor:
    """A water testing sensor listed in the marketplace"""

    def __init__(self, name, type, price, description='', original_price=None, rating=0, reviews=0,
                 vendor=None, vendor_link=None, image_url=None, in_stock=True, fast_shipping=False,
                 date_added=None, specifications=None, _id=None, created_at=None):
        self.id = str(_id) if _id else None
        self.name = name
        self.type = type
        self.description = description or ''
        self.price = price
        self.original_price = original_price
        self.rating = rating or 0
        self.reviews = reviews or 0
        self.vendor = vendor
        self.vendor_link = vendor_link
        self.image_url = image_url
        self.in_stock = in_stock
        self.fast_shipping = fast_shipping
        self.date_added = date_added or datetime.utcnow()
        self.specifications = specifications or {}
        self.created_at = created_at or datetime.utcnow()

    @property
    def discount(self):
        """Percent off the original price"""
        if not self.original_price or self.original_price <= self.price:
            return 0
        return round((self.original_price - self.price) / self.original_price * 100)

    def validate(self):
        errors = {}
        if not self.name or not str(self.name).strip():
            errors['name'] = 'Name is required'
        if not self.type or not str(self.type).strip():
            errors['type'] = 'Sensor type is required'
        if not isinstance(self.price, (int, float)) or isinstance(self.price, bool) \
                or not math.isfinite(self.price) or self.price < 0:
            errors['price'] = 'Price must be a non-negative number'
        if self.original_price is not None and (
                not isinstance(self.original_price, (int, float)) or self.original_price < 0):
            errors['original_price'] = 'Original price must be a non-negative number'
        if not isinstance(self.rating, (int, float)) or not 0 <= self.rating <= 5:
            errors['rating'] = 'Rating must be between 0 and 5'
        if self.vendor_link and not re.match(r'^https?://', self.vendor_link):
            errors['vendor_link'] = 'Vendor link must be an http(s) URL'

        if errors:
            raise ValidationError('Sensor validation failed', details=errors)

    def save(self):
        """Save sensor to database"""
        self.validate()
        db = db_instance.get_db()
        sensor_data = {
            'name': self.name,
            'type': self.type,
            'description': self.description,
            'price': self.price,
            'original_price': self.original_price,
            'rating': self.rating,
            'reviews': self.reviews,
            'vendor': self.vendor,
            'vendor_link': self.vendor_link,
            'image_url': self.image_url,
            'in_stock': self.in_stock,
            'fast_shipping': self.fast_shipping,
            'date_added': self.date_added,
            'specifications': self.specifications,
            'created_at': self.created_at
        }

        if self.id:
            db.sensors.update_one({'_id': ObjectId(self.id)}, {'$set': sensor_data})
        else:
            result = db.sensors.insert_one(sensor_data)
            self.id = str(result.inserted_id)

        return self

    @staticmethod
    def from_document(data):
        fields = {key: value for key, value in data.items() if key != '_id'}
        return Sensor(_id=data['_id'], **fields)

    @staticmethod
    def find_by_id(sensor_id):
        object_id = to_object_id(sensor_id)
        if not object_id:
            return None
        db = db_instance.get_db()
        data = db.sensors.find_one({'_id': object_id})
        return Sensor.from_document(data) if data else None

    @staticmethod
    def build_query(search=None, sensor_type=None, vendor=None, min_price=None, max_price=None,
                    min_rating=None, in_stock=None, fast_shipping=None):
        """Mongo filter for the marketplace search controls"""
        query = {}

        if search:
            pattern = {'$regex': re.escape(search.strip()), '$options': 'i'}
            query['$or'] = [
                {'name': pattern},
                {'type': pattern},
                {'description': pattern},
                {'vendor': pattern}
            ]

        if sensor_type:
            query['type'] = {'$regex': f'^{re.escape(sensor_type)}$', '$options': 'i'}
        if vendor:
            query['vendor'] = {'$regex': f'^{re.escape(vendor)}$', '$options': 'i'}

        price = {}
        if min_price is not None:
            price['$gte'] = min_price
        if max_price is not None:
            price['$lte'] = max_price
        if price:
            query['price'] = price

        if min_rating is not None:
            query['rating'] = {'$gte': min_rating}
        if in_stock:
            query['in_stock'] = True
        if fast_shipping:
            query['fast_shipping'] = True

        return query

    @staticmethod
    def search(filters=None, sort='relevance', page=1, limit=12):
        """Return (sensors, total) for one page of results"""
        db = db_instance.get_db()
        query = Sensor.build_query(**(filters or {}))
        total = db.sensors.count_documents(query)

        cursor = db.sensors.find(query).sort(SORT_OPTIONS.get(sort, SORT_OPTIONS['relevance']))
        cursor = cursor.skip((page - 1) * limit).limit(limit)

        return [Sensor.from_document(data) for data in cursor], total

    @staticmethod
    def list_types():
        db = db_instance.get_db()
        return sorted(db.sensors.distinct('type'))

    def to_dict(self):
        """Convert sensor to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'description': self.description,
            'price': self.price,
            'original_price': self.original_price,
            'discount': self.discount,
            'rating': self.rating,
            'reviews': self.reviews,
            'vendor': self.vendor,
            'vendor_link': self.vendor_link,
            'image_url': self.image_url,
            'in_stock': self.in_stock,
            'fast_shipping': self.fast_shipping,
            'date_added': self.date_added,
            'specifications': self.specifications
        }
