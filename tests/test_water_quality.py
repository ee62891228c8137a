"""
Salyte Beacon - Water Quality Threshold Tests
"""
import pytest
from salyte_beacon.utils.water_quality import (
    get_parameter_status, get_parameter_status_text, evaluate_test_results,
    quality_from_test_results, normalize_parameter, default_unit, worst_status
)


class TestParameterStatus:

    @pytest.mark.parametrize('value, expected', [
        (7.0, 'safe'), (6.5, 'safe'), (8.5, 'safe'),
        (6.2, 'warning'), (8.8, 'warning'),
        (5.9, 'critical'), (9.5, 'critical')
    ])
    def test_ph(self, value, expected):
        assert get_parameter_status(value, 'pH') == expected

    @pytest.mark.parametrize('value, expected', [
        (8, 'safe'), (6, 'safe'), (5, 'warning'), (4, 'warning'), (3.9, 'critical')
    ])
    def test_dissolved_oxygen(self, value, expected):
        assert get_parameter_status(value, 'Dissolved Oxygen') == expected

    @pytest.mark.parametrize('value, expected', [
        (0.5, 'safe'), (1, 'safe'), (2.1, 'warning'), (4, 'warning'), (8.4, 'critical')
    ])
    def test_turbidity(self, value, expected):
        assert get_parameter_status(value, 'turbidity') == expected

    @pytest.mark.parametrize('value, expected', [
        (245, 'safe'), (500, 'safe'), (750, 'warning'), (1200, 'critical')
    ])
    def test_tds(self, value, expected):
        assert get_parameter_status(value, 'TDS') == expected

    @pytest.mark.parametrize('value, expected', [
        (0.5, 'safe'), (0.1, 'warning'), (2, 'warning'), (4.5, 'critical')
    ])
    def test_chlorine(self, value, expected):
        assert get_parameter_status(value, 'chlorine') == expected

    def test_unknown_parameter_is_safe(self):
        assert get_parameter_status(12345, 'Conductivity') == 'safe'

    def test_status_text(self):
        assert get_parameter_status_text(7.2, 'ph') == 'Normal'
        assert get_parameter_status_text(1200, 'tds') == 'Critical'


class TestAggregation:

    def test_aliases_and_units(self):
        assert normalize_parameter(' DO ') == 'dissolved_oxygen'
        assert normalize_parameter('Total Hardness') == 'total_hardness'
        assert default_unit('Turbidity') == 'NTU'
        assert default_unit('Conductivity') is None

    def test_worst_status(self):
        assert worst_status(['safe', 'critical', 'warning']) == 'critical'
        assert worst_status([]) is None

    def test_evaluate_test_results(self):
        result = evaluate_test_results({'ph': 6.8, 'tds': 450, 'turbidity': 2.1, 'chlorine': None})

        assert result['parameters'] == {'ph': 'safe', 'tds': 'safe', 'turbidity': 'warning'}
        assert result['overall'] == 'warning'

    @pytest.mark.parametrize('results, quality', [
        ({'ph': 7.2, 'tds': 245, 'turbidity': 0.8}, 'safe'),
        ({'ph': 6.8, 'tds': 450, 'turbidity': 2.1}, 'moderate'),
        ({'ph': 5.9, 'tds': 1200, 'turbidity': 8.4}, 'unsafe'),
        ({}, 'unknown'),
        (None, 'unknown')
    ])
    def test_quality_labels(self, results, quality):
        assert quality_from_test_results(results) == quality
