"""
Salyte Beacon - Sensor Marketplace and Reading Tests
"""
from salyte_beacon.models.user import User


def product(**overrides):
    data = {
        'name': 'Nitrate Test Strips',
        'type': 'Nitrate',
        'price': 12.5,
        'original_price': 25,
        'vendor': 'Jumia',
        'vendor_link': 'https://jumia.co.ke/nitrate-strips'
    }
    data.update(overrides)
    return data


class TestMarketplace:
    """GET /api/sensors"""

    def test_list_all(self, client, seeded):
        data = client.get('/api/sensors').get_json()

        assert data['pagination']['total_items'] == 6
        assert 'pH' in data['filters']['types']
        assert data['sensors'][0]['discount'] == 18

    def test_filters(self, client, seeded):
        data = client.get('/api/sensors?vendor=amazon&in_stock=true&max_price=100').get_json()

        names = {s['name'] for s in data['sensors']}
        assert names == {'pH Meter Pro Digital', 'Chlorine Test Kit Professional'}

    def test_min_rating(self, client, seeded):
        data = client.get('/api/sensors?min_rating=4.5').get_json()

        assert all(s['rating'] >= 4.5 for s in data['sensors'])
        assert data['pagination']['total_items'] == 3

    def test_sort_by_price(self, client, seeded):
        prices = [s['price'] for s in client.get('/api/sensors?sort=price-low').get_json()['sensors']]

        assert prices == sorted(prices)

    def test_sort_newest(self, client, seeded):
        sensors = client.get('/api/sensors?sort=newest&limit=1').get_json()['sensors']

        assert sensors[0]['name'] == 'pH Meter Pro Digital'

    def test_invalid_sort(self, client):
        assert client.get('/api/sensors?sort=cheapest').status_code == 400

    def test_non_finite_filter(self, client):
        response = client.get('/api/sensors?max_price=nan')

        assert response.status_code == 400
        assert response.get_json()['details'] == {'max_price': 'Expected a number'}

    def test_invalid_number(self, client):
        response = client.get('/api/sensors?min_price=cheap')

        assert response.status_code == 400
        assert response.get_json()['details'] == {'min_price': 'Expected a number'}

    def test_pagination(self, client, seeded):
        data = client.get('/api/sensors?page=2&limit=4').get_json()

        assert len(data['sensors']) == 2
        assert data['pagination']['has_prev'] is True
        assert data['pagination']['has_next'] is False
        assert data['pagination']['total'] == 2

    def test_search(self, client, seeded):
        data = client.get('/api/sensors/search?q=oxygen').get_json()

        assert [s['name'] for s in data['sensors']] == ['Dissolved Oxygen Meter']

    def test_search_escapes_regex(self, client, seeded):
        response = client.get('/api/sensors/search?q=(')

        assert response.status_code == 200
        assert response.get_json()['sensors'] == []

    def test_search_requires_query(self, client):
        assert client.get('/api/sensors/search').status_code == 400

    def test_get_one(self, client, seeded):
        sensor_id = client.get('/api/sensors').get_json()['sensors'][0]['id']

        response = client.get(f'/api/sensors/{sensor_id}')
        assert response.status_code == 200
        assert response.get_json()['sensor']['id'] == sensor_id

    def test_get_missing(self, client):
        assert client.get('/api/sensors/64b000000000000000000000').status_code == 404
        assert client.get('/api/sensors/not-an-id').status_code == 404


class TestProducts:
    """POST /api/sensors/products"""

    def test_requires_auth(self, client):
        assert client.post('/api/sensors/products', json=product()).status_code == 401

    def test_requires_permission(self, client, auth_headers):
        assert client.post('/api/sensors/products', headers=auth_headers, json=product()).status_code == 403

    def test_create_with_permission(self, client, user, auth_headers):
        user.grant_permission('sensors', ['read', 'write']).save()

        response = client.post('/api/sensors/products', headers=auth_headers, json=product())

        assert response.status_code == 201
        assert response.get_json()['sensor']['discount'] == 50

    def test_non_finite_price(self, client, make_user, make_headers):
        headers = make_headers(make_user(role='admin'))

        for price in (float('nan'), 'inf'):
            response = client.post('/api/sensors/products', headers=headers, json=product(price=price))

            assert response.status_code == 400
            assert 'price' in response.get_json()['details']

    def test_validation(self, client, make_user, make_headers):
        headers = make_headers(make_user(role='admin'))

        response = client.post('/api/sensors/products', headers=headers, json=product(price=-1, rating=7))

        assert response.status_code == 400
        assert set(response.get_json()['details']) == {'price', 'rating'}


class TestReadings:
    """POST /api/sensors"""

    def test_anonymous_reading(self, client, db):
        response = client.post('/api/sensors', json={'type': 'pH', 'value': 9.4, 'station_id': 'station_001'})

        assert response.status_code == 201
        reading = response.get_json()['reading']
        assert reading['status'] == 'critical'
        assert reading['unit'] == 'pH'
        assert db.readings.find_one()['parameter'] == 'ph'

    def test_numeric_string_value(self, client):
        response = client.post('/api/sensors', json={'type': 'Turbidity', 'value': '0.4'})

        assert response.status_code == 201
        assert response.get_json()['reading']['status'] == 'safe'

    def test_invalid_value(self, client):
        response = client.post('/api/sensors', json={'type': 'pH', 'value': 'acidic'})

        assert response.status_code == 400

    def test_missing_fields(self, client):
        response = client.post('/api/sensors', json={'type': 'pH'})

        assert response.status_code == 400
        assert response.get_json()['details']['missing'] == ['value']

    def test_out_of_range_coordinates(self, client):
        response = client.post('/api/sensors', json={'type': 'pH', 'value': 7, 'latitude': 120})

        assert response.status_code == 400
        assert 'latitude' in response.get_json()['details']

    def test_authenticated_reading_is_credited(self, client, user, auth_headers):
        response = client.post('/api/sensors', headers=auth_headers, json={'type': 'TDS', 'value': 300})

        assert response.status_code == 201
        stored = User.find_by_id(user.id)
        assert stored.activity['data_points_contributed'] == 1
        assert stored.api_usage['daily_requests'] == 1
