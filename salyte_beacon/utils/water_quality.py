"""
Water quality thresholds.

Classifies single parameter readings as ``safe``, ``warning`` or
``critical`` and rolls a set of test results up into an overall status and
a map quality label.
"""

SAFE = 'safe'
WARNING = 'warning'
CRITICAL = 'critical'

STATUS_ORDER = {SAFE: 0, WARNING: 1, CRITICAL: 2}

# status -> map marker quality
QUALITY_LABELS = {
    SAFE: 'safe',
    WARNING: 'moderate',
    CRITICAL: 'unsafe'
}

PARAMETER_ALIASES = {
    'ph': 'ph',
    'do': 'dissolved_oxygen',
    'dissolved oxygen': 'dissolved_oxygen',
    'dissolved_oxygen': 'dissolved_oxygen',
    'dissolvedoxygen': 'dissolved_oxygen',
    'turbidity': 'turbidity',
    'tds': 'tds',
    'chlorine': 'chlorine'
}

DEFAULT_UNITS = {
    'ph': 'pH',
    'dissolved_oxygen': 'mg/L',
    'turbidity': 'NTU',
    'tds': 'mg/L',
    'chlorine': 'mg/L'
}


def normalize_parameter(parameter):
    """Map a user supplied parameter name onto its canonical key"""
    if not parameter:
        return None
    key = str(parameter).strip().lower()
    return PARAMETER_ALIASES.get(key, key.replace(' ', '_'))


def default_unit(parameter):
    return DEFAULT_UNITS.get(normalize_parameter(parameter))


def get_parameter_status(value, parameter):
    """Classify one reading against the drinking water thresholds"""
    parameter = normalize_parameter(parameter)
    value = float(value)

    if parameter == 'ph':
        if 6.5 <= value <= 8.5:
            return SAFE
        if 6.0 <= value <= 9.0:
            return WARNING
        return CRITICAL

    if parameter == 'dissolved_oxygen':
        if value >= 6:
            return SAFE
        if value >= 4:
            return WARNING
        return CRITICAL

    if parameter == 'turbidity':
        if value <= 1:
            return SAFE
        if value <= 4:
            return WARNING
        return CRITICAL

    if parameter == 'tds':
        if value <= 500:
            return SAFE
        if value <= 1000:
            return WARNING
        return CRITICAL

    if parameter == 'chlorine':
        if 0.2 <= value <= 1.0:
            return SAFE
        if value <= 4:
            return WARNING
        return CRITICAL

    return SAFE


def get_parameter_status_text(value, parameter):
    status = get_parameter_status(value, parameter)
    return {SAFE: 'Normal', WARNING: 'Warning', CRITICAL: 'Critical'}.get(status, 'Unknown')


def worst_status(statuses):
    """Most severe of the given statuses, or None for an empty input"""
    statuses = [s for s in statuses if s]
    if not statuses:
        return None
    return max(statuses, key=lambda s: STATUS_ORDER[s])


def evaluate_test_results(test_results):
    """Per-parameter statuses plus the overall status for a results dict"""
    statuses = {}
    for parameter, value in (test_results or {}).items():
        if value is None:
            continue
        statuses[parameter] = get_parameter_status(value, parameter)

    return {
        'parameters': statuses,
        'overall': worst_status(statuses.values())
    }


def quality_from_test_results(test_results):
    """Map marker quality (safe/moderate/unsafe/unknown) for test results"""
    overall = evaluate_test_results(test_results)['overall']
    if overall is None:
        return 'unknown'
    return QUALITY_LABELS[overall]
