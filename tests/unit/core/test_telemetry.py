"""
Unit tests for telemetry setup with export disabled.
"""

from catalog_api.core.telemetry import (
    OpenTelemetryManager,
    get_correlation_id,
    set_correlation_id,
)


class TestOpenTelemetryManager:
    """Test that disabled tracing leaves the app untouched."""

    def test_initialize_disabled(self, settings, app):
        manager = OpenTelemetryManager(settings)

        assert manager.initialize(app) is False
        assert manager.initialized is False

    def test_instrument_engine_and_shutdown_are_noops_when_disabled(self, settings):
        manager = OpenTelemetryManager(settings)

        manager.instrument_engine(engine=None)
        manager.shutdown()

        assert manager.initialized is False


def test_correlation_id_context():
    set_correlation_id("req-abcdef12")

    assert get_correlation_id() == "req-abcdef12"
