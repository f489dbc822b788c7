from datetime import datetime, timezone

import pytest

from f6n.models import FunctionSummary
from f6n.providers.sample import SampleProvider
from f6n.ui.machine import StateMachine
from f6n.ui.state import HostInfo, ProviderInfo

FIXED_NOW = datetime(2024, 9, 25, 12, 0, 0, tzinfo=timezone.utc)


def make_function(name: str, runtime: str = "python3.12", description: str = "") -> FunctionSummary:
    return FunctionSummary(
        name=name,
        runtime=runtime,
        memory=128,
        timeout=3,
        handler="app.handler",
        description=description,
        region="us-east-1",
    )


@pytest.fixture
def functions():
    return [
        make_function("fn-a", "python3.12", "Alpha worker"),
        make_function("fn-b", "nodejs20.x", "Bravo API"),
        make_function("orders", "go1.x", "Order pipeline"),
    ]


@pytest.fixture
def sample_provider():
    return SampleProvider(clock=lambda: FIXED_NOW)


@pytest.fixture
def machine():
    return StateMachine(
        ProviderInfo(name="aws", region="us-east-1", environment="test"),
        HostInfo(cpu="x86_64", memory="8 cores", os="linux", user="tester"),
        clock=lambda: FIXED_NOW,
    )
