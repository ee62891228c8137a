"""
Salyte Beacon - Dashboard Tests
"""
import io
import os
from datetime import datetime, timedelta
from salyte_beacon.models.reading import Reading
from salyte_beacon.models.user import User


def csv_upload(text, filename='readings.csv'):
    return {'file': (io.BytesIO(text.encode('utf-8')), filename)}


class TestDashboardStats:

    def test_module_status(self, client):
        response = client.get('/api/dashboard')

        assert response.status_code == 200
        assert '/stats' in response.get_json()['endpoints']

    def test_stats_on_empty_database(self, client):
        stats = client.get('/api/dashboard/stats').get_json()['stats']

        assert stats['readings']['total'] == 0
        assert stats['readings']['safe_percentage'] == 0
        assert stats['reports']['avg_response_time'] == '24h'
        assert stats['users']['total_users'] == 0

    def test_stats_with_sample_data(self, client, seeded):
        data = client.get('/api/dashboard/stats').get_json()
        stats = data['stats']

        assert stats['readings']['total'] == 50
        assert sum(stats['readings']['by_status'].values()) == 50
        assert set(stats['readings']['parameters']) == {'ph', 'tds', 'turbidity'}
        assert stats['water_points'] == {'safe': 1, 'moderate': 1, 'unsafe': 1, 'unknown': 0}
        assert stats['reports']['total'] == 2
        assert stats['reports']['resolved'] == 1
        assert stats['reports']['avg_response_time'] == '6h'
        assert len(data['recent_readings']) == 10

    def test_parameter_summary(self, app):
        for value in (7.0, 7.5, 8.0):
            Reading(type='pH', value=value).save()

        summary = Reading.parameter_summary()['ph']
        assert summary['count'] == 3
        assert summary['mean'] == 7.5
        assert summary['min'] == 7.0
        assert summary['max'] == 8.0
        assert summary['status'] == 'safe'


class TestTrends:

    def test_daily_counts(self, client):
        now = datetime.utcnow()
        Reading(type='pH', value=7.0, timestamp=now).save()
        Reading(type='pH', value=5.0, timestamp=now).save()
        Reading(type='TDS', value=700, timestamp=now - timedelta(days=1)).save()
        Reading(type='TDS', value=100, timestamp=now - timedelta(days=30)).save()

        trends = client.get('/api/dashboard/trends?days=7').get_json()['trends']

        assert len(trends['labels']) == 7
        assert trends['labels'][-1] == now.strftime('%Y-%m-%d')
        assert trends['safe'][-1] == 1
        assert trends['critical'][-1] == 1
        assert trends['warning'][-2] == 1
        assert sum(trends['safe']) == 1

    def test_days_must_be_in_range(self, client):
        assert client.get('/api/dashboard/trends?days=0').status_code == 400
        assert client.get('/api/dashboard/trends?days=1000').status_code == 400
        assert client.get('/api/dashboard/trends?days=week').status_code == 400


class TestCsvUpload:

    def test_requires_auth(self, client):
        response = client.post('/api/dashboard/upload', data=csv_upload('type,value\npH,7\n'))

        assert response.status_code == 401

    def test_import(self, client, user, auth_headers, db, app):
        response = client.post('/api/dashboard/upload', headers=auth_headers, data=csv_upload(
            'type,value,station_id,timestamp\n'
            'pH,7.2,station_001,2025-03-01T08:00:00\n'
            'Turbidity,cloudy,station_001,\n'
            'TDS,650,station_002,\n'
        ))

        assert response.status_code == 200
        data = response.get_json()
        assert data['imported'] == 2
        assert data['rejected'] == 1
        assert data['errors'][0]['line'] == 3

        stored = list(db.readings.find({}, {'_id': 0, 'parameter': 1, 'source': 1, 'user_id': 1}))
        assert all(r['source'] == 'csv' and r['user_id'] == user.id for r in stored)
        assert User.find_by_id(user.id).activity['data_points_contributed'] == 2
        assert os.listdir(app.config['UPLOAD_FOLDER']) == []

    def test_missing_columns(self, client, auth_headers, app):
        response = client.post('/api/dashboard/upload', headers=auth_headers, data=csv_upload('name,reading\npH,7\n'))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid CSV file'
        assert os.listdir(app.config['UPLOAD_FOLDER']) == []

    def test_malformed_csv(self, client, auth_headers, app):
        body = 'type,value\npH,' + 'x' * 200000 + '\n'

        response = client.post('/api/dashboard/upload', headers=auth_headers, data=csv_upload(body))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid CSV file'
        assert os.listdir(app.config['UPLOAD_FOLDER']) == []

    def test_wrong_file_type(self, client, auth_headers):
        response = client.post('/api/dashboard/upload', headers=auth_headers, data=csv_upload('x', 'data.xlsx'))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid file type'

    def test_no_file(self, client, auth_headers):
        response = client.post('/api/dashboard/upload', headers=auth_headers, data={})

        assert response.status_code == 400

    def test_file_too_large(self, client, auth_headers, app):
        app.config['MAX_CONTENT_LENGTH'] = 1024 * 1024
        body = 'type,value\n' + 'pH,7.0\n' * 200000

        response = client.post('/api/dashboard/upload', headers=auth_headers, data=csv_upload(body))

        assert response.status_code == 413
        assert response.get_json()['error'] == 'File too large'
