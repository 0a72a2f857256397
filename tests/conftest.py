"""
Shared test fixtures for codefirst-client tests.
"""

from __future__ import annotations

import pytest

from codefirst_client import mapping
from codefirst_client.channel import LocalChannel
from tests._testkit import (
    GreeterService,
    HelloReply,
    MapperSpy,
    RecordingChannel,
    make_greeter_contract,
)


@pytest.fixture
def mapper_spy(monkeypatch) -> MapperSpy:
    """Wrap mapping.map_contract so tests can count builds."""
    spy = MapperSpy()
    real_map_contract = mapping.map_contract

    def counting_map_contract(contract_type, configuration):
        spy.record(contract_type, configuration)
        return real_map_contract(contract_type, configuration)

    monkeypatch.setattr(mapping, "map_contract", counting_map_contract)
    return spy


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel(response=HelloReply(message="canned"))


@pytest.fixture
def greeter_contract() -> type:
    return make_greeter_contract()


@pytest.fixture
def local_channel(greeter_contract) -> LocalChannel:
    channel = LocalChannel()
    channel.register(greeter_contract, GreeterService())
    return channel
