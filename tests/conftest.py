from __future__ import annotations

from pathlib import Path

import pytest

from tstream.auth.credentials import Credentials


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    _ = config
    for item in items:
        p = Path(str(item.fspath))
        parts = p.parts
        if "tests" in parts and "unit" in parts:
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def creds() -> Credentials:
    return Credentials(
        consumer_key="xvz1evFS4wEEPTGEFPHBog",
        consumer_secret="kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw",
        access_token="370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb",
        access_token_secret="LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE",
    )
