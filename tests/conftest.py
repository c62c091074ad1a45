import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the config environment before any domain module is imported.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_adapters_and_settings():
    """Give every test fresh fake adapters, default settings and no pending alerts."""
    from fulfillment.commerce import reset_commerce
    from fulfillment.config import override_settings, reset_settings
    from fulfillment.courier import reset_courier
    from fulfillment.erp import reset_erp
    from fulfillment.notifications import reset_alert_board, reset_notifier
    from fulfillment.payments import reset_payments

    reset_settings()
    override_settings(external_call_backoff=0.0, external_call_timeout=5.0)

    yield

    reset_erp()
    reset_courier()
    reset_payments()
    reset_commerce()
    reset_notifier()
    reset_alert_board()
    reset_settings()
