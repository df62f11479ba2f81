import health
from health import CheckResult, HealthStatus


def passing(name):
    return lambda *args, **kwargs: CheckResult(status="pass", latency_ms=1.0, message=f"{name} ok")


def failing(name):
    return lambda *args, **kwargs: CheckResult(status="fail", latency_ms=1.0, message=f"{name} down")


def test_all_checks_pass(monkeypatch):
    monkeypatch.setattr(health, "check_database_connectivity", passing("db"))
    monkeypatch.setattr(health, "check_store_objects", passing("objects"))
    monkeypatch.setattr(health, "check_identity_provider", passing("idp"))

    result = health.get_detailed_health()

    assert result["status"] == HealthStatus.HEALTHY.value
    assert result["app"] == "ocean-observer"
    assert set(result["checks"]) == {"database", "store_objects", "identity_provider"}


def test_identity_provider_down_is_degraded(monkeypatch):
    monkeypatch.setattr(health, "check_database_connectivity", passing("db"))
    monkeypatch.setattr(health, "check_store_objects", passing("objects"))
    monkeypatch.setattr(health, "check_identity_provider", failing("idp"))

    assert health.get_detailed_health()["status"] == HealthStatus.DEGRADED.value


def test_database_down_skips_catalog_checks(monkeypatch):
    monkeypatch.setattr(health, "check_database_connectivity", failing("db"))
    monkeypatch.setattr(health, "check_store_objects", failing("should not run"))
    monkeypatch.setattr(health, "check_identity_provider", passing("idp"))

    result = health.get_detailed_health()

    assert result["status"] == HealthStatus.UNHEALTHY.value
    assert "store_objects" not in result["checks"]


def test_public_health_has_no_details(monkeypatch):
    monkeypatch.setattr(health, "check_database_connectivity", passing("db"))

    assert set(health.get_public_health()) == {"status", "timestamp"}
