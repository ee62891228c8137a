import logging
import random
from datetime import datetime, timedelta
from pymongo import MongoClient, ASCENDING, DESCENDING

logger = logging.getLogger(__name__)

DATABASE_NAMES = {
    'development': 'salyte_beacon_dev',
    'test': 'salyte_beacon_test',
    'production': 'salyte_beacon_prod'
}

CLIENT_OPTIONS = {
    'maxPoolSize': 10,
    'serverSelectionTimeoutMS': 5000,
    'socketTimeoutMS': 45000
}


def get_database_name(environment):
    """Database name for the running environment"""
    return DATABASE_NAMES.get(environment, DATABASE_NAMES['development'])


class Database:
    def __init__(self):
        self.client = None
        self.db = None
        self.environment = None

    def initialize(self, app):
        """Initialize database connection"""
        uri = app.config['MONGODB_URI']
        self.environment = app.config.get('ENV_NAME', 'development')
        db_name = get_database_name(self.environment)

        logger.info("Connecting to MongoDB (environment: %s)", self.environment)
        self.client = MongoClient(uri, **CLIENT_OPTIONS)

        # Atlas URIs carry their own database name
        if uri.startswith('mongodb+srv'):
            self.db = self.client.get_default_database(default=db_name)
        else:
            self.db = self.client[db_name]

        self.create_indexes()
        logger.info("MongoDB ready, database: %s", self.db.name)

    def create_indexes(self):
        """Create indexes for the API's query patterns"""
        self.db.users.create_index("email", unique=True)
        self.db.users.create_index("role")
        self.db.users.create_index([("activity.last_active", DESCENDING)])
        self.db.users.create_index([("created_at", DESCENDING)])
        self.db.sensors.create_index([("type", ASCENDING), ("price", ASCENDING)])
        self.db.readings.create_index([("type", ASCENDING), ("timestamp", DESCENDING)])
        self.db.readings.create_index("station_id")
        self.db.water_points.create_index([("quality", ASCENDING), ("type", ASCENDING)])
        self.db.reports.create_index("tracking_id", unique=True)
        self.db.reports.create_index([("status", ASCENDING), ("submitted_at", DESCENDING)])
        self.db.conversations.create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)])

    def get_db(self):
        """Get database instance"""
        return self.db

    def is_connected(self):
        return self.db is not None

    def get_connection_info(self):
        """Describe the current connection"""
        if not self.is_connected():
            return {'connected': False}

        return {
            'connected': True,
            'name': self.db.name,
            'environment': self.environment,
            'collections': sorted(self.db.list_collection_names())
        }

    def health_check(self):
        """Ping the server and report its status"""
        try:
            self.client.admin.command('ping')
            return {
                'status': 'healthy',
                'connected': True,
                'info': self.get_connection_info(),
                'timestamp': datetime.utcnow().isoformat()
            }
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return {
                'status': 'unhealthy',
                'connected': False,
                'error': str(e),
                'timestamp': datetime.utcnow().isoformat()
            }

    def clear_database(self):
        """Remove every document from every collection (tests only)"""
        if not self.is_connected():
            raise RuntimeError('Database not connected')

        for name in self.db.list_collection_names():
            self.db[name].delete_many({})
        logger.info("Database cleared")

    def initialize_sample_data(self):
        """Seed marketplace, map, readings and reports when empty"""
        if not self.is_connected():
            raise RuntimeError('Database not connected')

        if self.db.sensors.count_documents({}) > 0:
            logger.info("Database already has data, skipping sample data")
            return False

        now = datetime.utcnow()

        self.db.sensors.insert_many([dict(product, created_at=now) for product in SAMPLE_SENSORS])

        for point in SAMPLE_WATER_POINTS:
            self.db.water_points.insert_one(dict(point, created_at=now, updated_at=now))

        readings = []
        ranges = {
            'pH': (6.5, 8.5, 'pH'),
            'TDS': (100, 500, 'mg/L'),
            'Turbidity': (0, 10, 'NTU')
        }
        for i in range(50):
            location = SAMPLE_LOCATIONS[i % len(SAMPLE_LOCATIONS)]
            parameter = list(ranges)[i % len(ranges)]
            low, high, unit = ranges[parameter]
            readings.append({
                'type': parameter,
                'value': round(random.uniform(low, high), 2),
                'unit': unit,
                'station_id': location['station_id'],
                'location_name': location['name'],
                'latitude': location['lat'],
                'longitude': location['lng'],
                'source': 'sample',
                'user_id': None,
                'timestamp': now - timedelta(seconds=random.randint(0, 30 * 24 * 3600))
            })
        self.db.readings.insert_many(readings)

        for i, report in enumerate(SAMPLE_REPORTS):
            submitted_at = now - timedelta(days=i + 1)
            resolved_at = submitted_at + timedelta(hours=6) if report['status'] == 'resolved' else None
            self.db.reports.insert_one(dict(
                report,
                tracking_id=f"SB-SAMPLE-{i + 1:04d}",
                submitted_at=submitted_at,
                resolved_at=resolved_at,
                updated_at=now
            ))

        logger.info(
            "Seeded %d sensors, %d water points, %d readings, %d reports",
            len(SAMPLE_SENSORS), len(SAMPLE_WATER_POINTS), len(readings), len(SAMPLE_REPORTS)
        )
        return True

    def close(self):
        """Close database connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None


SAMPLE_LOCATIONS = [
    {'lat': -1.2921, 'lng': 36.8219, 'name': 'Nairobi Central', 'station_id': 'station_001'},
    {'lat': -1.3031, 'lng': 36.8073, 'name': 'Karen', 'station_id': 'station_002'},
    {'lat': -1.2741, 'lng': 36.8160, 'name': 'Westlands', 'station_id': 'station_003'}
]

SAMPLE_SENSORS = [
    {
        'name': 'pH Meter Pro Digital',
        'type': 'pH',
        'description': 'Professional grade digital pH meter with automatic temperature compensation and calibration.',
        'price': 89.99,
        'original_price': 109.99,
        'rating': 4.5,
        'reviews': 128,
        'vendor': 'Amazon',
        'vendor_link': 'https://amazon.com/ph-meter-pro',
        'in_stock': True,
        'fast_shipping': True,
        'date_added': datetime(2025, 1, 10),
        'specifications': {
            'Measurement Range': '0.00 - 14.00 pH',
            'Accuracy': '±0.01 pH'
        }
    },
    {
        'name': 'TDS Tester Digital Pen',
        'type': 'TDS',
        'description': 'Compact digital TDS meter for measuring total dissolved solids in water with high accuracy.',
        'price': 24.99,
        'rating': 4.3,
        'reviews': 89,
        'vendor': 'Jumia',
        'vendor_link': 'https://jumia.co.ke/tds-tester',
        'in_stock': True,
        'fast_shipping': False,
        'date_added': datetime(2025, 1, 8)
    },
    {
        'name': 'Turbidity Sensor Professional',
        'type': 'Turbidity',
        'description': 'High precision turbidity sensor for water clarity measurement in laboratory and field conditions.',
        'price': 156.00,
        'rating': 4.7,
        'reviews': 45,
        'vendor': 'Amazon',
        'vendor_link': 'https://amazon.com/turbidity-sensor',
        'in_stock': True,
        'fast_shipping': True,
        'date_added': datetime(2025, 1, 5)
    },
    {
        'name': 'Conductivity Meter Portable',
        'type': 'Conductivity',
        'description': 'Portable conductivity meter for measuring electrical conductivity and salinity in water samples.',
        'price': 67.50,
        'rating': 4.2,
        'reviews': 67,
        'vendor': 'eBay',
        'vendor_link': 'https://ebay.com/conductivity-meter',
        'in_stock': False,
        'fast_shipping': False,
        'date_added': datetime(2025, 1, 3)
    },
    {
        'name': 'Chlorine Test Kit Professional',
        'type': 'Chlorine',
        'description': 'Complete chlorine testing kit for measuring free and total chlorine levels in water.',
        'price': 45.99,
        'rating': 4.4,
        'reviews': 156,
        'vendor': 'Amazon',
        'vendor_link': 'https://amazon.com/chlorine-test-kit',
        'in_stock': True,
        'fast_shipping': True,
        'date_added': datetime(2025, 1, 1)
    },
    {
        'name': 'Dissolved Oxygen Meter',
        'type': 'Dissolved Oxygen',
        'description': 'Digital dissolved oxygen meter with automatic temperature and salinity compensation.',
        'price': 234.00,
        'rating': 4.6,
        'reviews': 34,
        'vendor': 'AliExpress',
        'vendor_link': 'https://aliexpress.com/do-meter',
        'in_stock': True,
        'fast_shipping': False,
        'date_added': datetime(2024, 12, 28)
    }
]

SAMPLE_WATER_POINTS = [
    {
        'name': 'Nairobi City Water Point',
        'type': 'borehole',
        'quality': 'safe',
        'latitude': -1.2921,
        'longitude': 36.8219,
        'description': 'Community borehole serving central Nairobi',
        'people_served': 500,
        'test_results': {'ph': 7.2, 'tds': 245, 'turbidity': 0.8},
        'reported_by': None
    },
    {
        'name': 'Kasarani Water Station',
        'type': 'well',
        'quality': 'moderate',
        'latitude': -1.2800,
        'longitude': 36.8300,
        'description': 'Shallow well in Kasarani area',
        'people_served': 200,
        'test_results': {'ph': 6.8, 'tds': 450, 'turbidity': 2.1},
        'reported_by': None
    },
    {
        'name': 'Kibera Community Source',
        'type': 'spring',
        'quality': 'unsafe',
        'latitude': -1.3000,
        'longitude': 36.8100,
        'description': 'Natural spring requiring treatment',
        'people_served': 800,
        'test_results': {'ph': 5.9, 'tds': 1200, 'turbidity': 8.4},
        'reported_by': None
    }
]

SAMPLE_REPORTS = [
    {
        'type': 'contamination',
        'title': 'Water Contamination in Nairobi River',
        'location_name': 'Nairobi River',
        'county': 'Nairobi',
        'latitude': -1.2921,
        'longitude': 36.8219,
        'severity': 'high',
        'affected_people': 150,
        'description': 'Water has strange smell and color. Possible contamination.',
        'status': 'submitted',
        'priority': 'urgent',
        'is_anonymous': True,
        'user_id': None
    },
    {
        'type': 'quality',
        'title': 'Water Quality Issues in Karen Borehole',
        'location_name': 'Karen Borehole',
        'county': 'Nairobi',
        'latitude': -1.3031,
        'longitude': 36.8073,
        'severity': 'low',
        'affected_people': 0,
        'description': 'Borehole water tested safe for consumption.',
        'status': 'resolved',
        'priority': 'normal',
        'is_anonymous': True,
        'user_id': None
    }
]

# Global database instance
db_instance = Database()
