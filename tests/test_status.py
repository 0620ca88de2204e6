import pytest

from status import (
    average_water_level,
    count_alert_severities,
    count_node_statuses,
    evaluate_status,
    refresh_operational_status,
)


@pytest.mark.parametrize("water, blockage, expected", [
    (0, 0, "normal"),
    (69.9, 29.9, "normal"),
    (70, 0, "warning"),
    (0, 30, "warning"),
    (84.9, 49.9, "warning"),
    (85, 0, "critical"),
    (0, 50, "critical"),
    (100, 100, "critical"),
    (40, 90, "critical"),
    (90, 10, "critical"),
])
def test_evaluate_status_thresholds(water, blockage, expected):
    assert evaluate_status(water, blockage) == expected


def test_boundaries_belong_to_upper_bucket():
    assert evaluate_status(85, 0) == "critical"
    assert evaluate_status(70, 0) == "warning"
    assert evaluate_status(0, 50) == "critical"
    assert evaluate_status(0, 30) == "warning"


def test_missing_readings_count_as_zero():
    assert evaluate_status(None, None) == "normal"
    assert evaluate_status(None, 55) == "critical"


def test_classifier_matches_rule_over_grid():
    for water in range(0, 101, 5):
        for blockage in range(0, 101, 5):
            result = evaluate_status(water, blockage)
            if water >= 85 or blockage >= 50:
                assert result == "critical"
            elif water >= 70 or blockage >= 30:
                assert result == "warning"
            else:
                assert result == "normal"


def test_refresh_operational_status_writes_label():
    node = {"currentStatus": {"waterLevel": {"current": 72}, "operationalStatus": "normal"}}
    assert refresh_operational_status(node) == "warning"
    assert node["currentStatus"]["operationalStatus"] == "warning"


def test_tallies():
    nodes = [
        {"currentStatus": {"operationalStatus": "normal", "waterLevel": {"current": 10}}},
        {"currentStatus": {"operationalStatus": "critical", "waterLevel": {"current": 90}}},
        {"currentStatus": {"operationalStatus": "critical", "waterLevel": {"current": 95}}},
        {"currentStatus": {}},
    ]
    assert count_node_statuses(nodes) == {"normal": 2, "warning": 0, "critical": 2}
    assert average_water_level(nodes) == 49
    assert average_water_level([]) == 0

    alerts = [{"severity": "high"}, {"severity": "critical"}, {"severity": "bogus"}]
    assert count_alert_severities(alerts) == {"low": 0, "medium": 0, "high": 1, "critical": 1}
