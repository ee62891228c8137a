"""
Salyte Beacon - Water Point Map Tests
"""
import pytest
from salyte_beacon.models.water_point import WaterPoint
from salyte_beacon.utils.errors import ValidationError


class TestMapData:

    def test_feature_collection(self, client, seeded):
        data = client.get('/api/map/data').get_json()

        assert data['type'] == 'FeatureCollection'
        assert data['metadata']['total'] == 3

        kibera = next(f for f in data['features'] if f['properties']['name'] == 'Kibera Community Source')
        assert kibera['geometry'] == {'type': 'Point', 'coordinates': [36.81, -1.3]}
        assert kibera['properties']['parameter_status'] == {
            'ph': 'critical', 'tds': 'critical', 'turbidity': 'critical'
        }

    def test_quality_filter(self, client, seeded):
        data = client.get('/api/map/data?quality=safe,moderate').get_json()

        assert {f['properties']['quality'] for f in data['features']} == {'safe', 'moderate'}

    def test_type_filter(self, client, seeded):
        data = client.get('/api/map/data?type=well').get_json()

        assert [f['properties']['name'] for f in data['features']] == ['Kasarani Water Station']

    def test_invalid_quality_filter(self, client):
        response = client.get('/api/map/data?quality=sparkling')

        assert response.status_code == 400
        assert response.get_json()['details'] == {'quality': ['sparkling']}

    def test_layers(self, client, seeded):
        data = client.get('/api/map/layers').get_json()

        counts = {layer['id']: layer['count'] for layer in data['layers']}
        assert counts == {'safe': 1, 'moderate': 1, 'unsafe': 1, 'unknown': 0}
        assert data['total'] == 3


class TestReportWaterPoint:

    def test_quality_derived_from_results(self, client):
        response = client.post('/api/map/report', json={
            'name': 'Mathare Kiosk',
            'type': 'kiosk',
            'latitude': -1.26,
            'longitude': 36.85,
            'test_results': {'ph': 7.0, 'tds': 800}
        })

        assert response.status_code == 201
        feature = response.get_json()['feature']
        assert feature['properties']['quality'] == 'moderate'
        assert feature['properties']['test_results'] == {'ph': 7.0, 'tds': 800.0}

    def test_untested_point_is_unknown(self, client):
        response = client.post('/api/map/report', json={
            'name': 'Village Well', 'type': 'well', 'latitude': 0.5, 'longitude': 35.2
        })

        assert response.get_json()['feature']['properties']['quality'] == 'unknown'

    def test_reporter_is_recorded(self, client, user, auth_headers, db):
        client.post('/api/map/report', headers=auth_headers, json={
            'name': 'Village Well', 'type': 'well', 'latitude': 0.5, 'longitude': 35.2, 'quality': 'safe'
        })

        assert db.water_points.find_one({'name': 'Village Well'})['reported_by'] == user.id

    def test_validation(self, client):
        response = client.post('/api/map/report', json={
            'name': 'Somewhere', 'type': 'ocean', 'latitude': 91, 'longitude': 10
        })

        assert response.status_code == 400
        assert set(response.get_json()['details']) == {'type', 'latitude'}

    def test_non_finite_test_result(self, client, db):
        response = client.post('/api/map/report', json={
            'name': 'Village Well', 'type': 'well', 'latitude': 0.5, 'longitude': 35.2,
            'test_results': {'ph': 'nan'}
        })

        assert response.status_code == 400
        assert 'ph' in response.get_json()['details']
        assert db.water_points.count_documents({}) == 0

    def test_model_rejects_non_finite_results(self, app):
        point = WaterPoint('Village Well', 'well', 0.5, 35.2, quality='safe', test_results={'tds': float('inf')})

        with pytest.raises(ValidationError) as excinfo:
            point.validate()
        assert 'test_results.tds' in excinfo.value.details
