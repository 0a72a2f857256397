"""
Tests for the client factories and their adapter caches.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from codefirst_client import factory as factory_module
from codefirst_client import mapping
from codefirst_client.binder import BinderConfiguration, NamingPolicy
from codefirst_client.client import CodeFirstClient, ContractClient
from codefirst_client.errors import ContractError
from codefirst_client.factory import ClientFactory
from codefirst_client.mapping import ProxyPlan
from tests._testkit import HelloReply, HelloRequest, make_greeter_contract


def demo_configuration() -> BinderConfiguration:
    return BinderConfiguration(naming=NamingPolicy(package="demo"))


class TestFactorySelection:
    """Test ClientFactory.default() / ClientFactory.create()."""

    def test_default_is_singleton(self):
        """Test that default() always returns the same factory."""
        assert ClientFactory.default() is ClientFactory.default()

    def test_create_without_configuration_returns_default(self):
        """Test that create() routes to the default singleton."""
        assert ClientFactory.create() is ClientFactory.default()
        assert ClientFactory.create(None) is ClientFactory.default()

    def test_create_with_default_configuration_returns_default(self):
        """Test that the default configuration (or an equal one) routes to the singleton."""
        assert ClientFactory.create(BinderConfiguration.default()) is ClientFactory.default()
        assert ClientFactory.create(BinderConfiguration()) is ClientFactory.default()

    def test_create_non_default_returns_new_factory_each_time(self):
        """Test that factories are not deduplicated across create() calls."""
        config = demo_configuration()

        first = ClientFactory.create(config)
        second = ClientFactory.create(config)

        assert first is not second
        assert first is not ClientFactory.default()
        assert first.binder_configuration == second.binder_configuration == config

    def test_binder_configuration_accessor(self):
        """Test that each factory exposes its fixed configuration."""
        config = demo_configuration()

        assert ClientFactory.default().binder_configuration is BinderConfiguration.default()
        assert ClientFactory.create(config).binder_configuration is config

    def test_default_usage_never_constructs_configured_factory(self, monkeypatch, recording_channel):
        """Test that default-configuration requests never touch a configured factory."""
        constructed = []
        original_init = factory_module._ConfiguredClientFactory.__init__

        def tracking_init(self, binder_configuration):
            constructed.append(binder_configuration)
            original_init(self, binder_configuration)

        monkeypatch.setattr(factory_module._ConfiguredClientFactory, "__init__", tracking_init)
        Greeter = make_greeter_contract()

        ClientFactory.create().create_client(Greeter, recording_channel)
        ClientFactory.create(BinderConfiguration()).get_client_type(Greeter)
        ClientFactory.default().create_adapter(recording_channel, Greeter).as_contract()

        assert constructed == []


class TestDefaultFactory:
    """Test the process-wide default factory."""

    def test_create_client_implements_contract(self, recording_channel):
        """Test that the adapter is a contract instance bound to the channel."""
        Greeter = make_greeter_contract()

        client = ClientFactory.default().create_client(Greeter, recording_channel)

        assert Greeter in type(client).__mro__
        assert isinstance(client, CodeFirstClient)
        assert client.channel is recording_channel
        assert client.as_contract() is client

    def test_repeated_requests_share_concrete_type(self, recording_channel):
        """Test that two requests yield instances of the same concrete type."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.default()

        first = factory.create_client(Greeter, recording_channel)
        second = factory.create_client(Greeter, recording_channel)

        assert first is not second
        assert type(first) is type(second)

    def test_get_client_type_matches_instance_type(self, recording_channel):
        """Test that get_client_type agrees with create_client."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.default()

        client_type = factory.get_client_type(Greeter)
        client = factory.create_client(Greeter, recording_channel)

        assert type(client) is client_type

    def test_mapping_runs_once_per_contract(self, mapper_spy, recording_channel):
        """Test that the mapping engine is invoked once per contract."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.default()

        for _ in range(5):
            factory.create_client(Greeter, recording_channel)
        factory.get_client_type(Greeter)

        assert mapper_spy.count(Greeter) == 1

    def test_concurrent_first_use_builds_once(self, monkeypatch, mapper_spy, recording_channel):
        """Test that racing first callers share one build."""
        Greeter = make_greeter_contract()
        counting_map_contract = mapping.map_contract
        started = threading.Event()

        def slow_map_contract(contract_type, configuration):
            started.set()
            time.sleep(0.05)
            return counting_map_contract(contract_type, configuration)

        monkeypatch.setattr(mapping, "map_contract", slow_map_contract)

        with ThreadPoolExecutor(max_workers=16) as pool:
            types = list(
                pool.map(
                    lambda _: type(ClientFactory.default().create_client(Greeter, recording_channel)),
                    range(16),
                )
            )

        assert started.is_set()
        assert len(set(types)) == 1
        assert mapper_spy.count(Greeter) == 1

    def test_failed_build_is_retried(self, mapper_spy, recording_channel):
        """Test that a mapping failure publishes nothing and is retried."""

        class BadContract:
            pass

        factory = ClientFactory.default()

        with pytest.raises(ContractError, match="defines no operations"):
            factory.create_client(BadContract, recording_channel)
        with pytest.raises(ContractError, match="defines no operations"):
            factory.get_client_type(BadContract)

        assert mapper_spy.count(BadContract) == 2
        assert factory_module._DefaultProxyCache.peek(BadContract) is None

    def test_rejects_non_class_contract(self, recording_channel):
        """Test that non-class contracts are rejected before any cache is touched."""
        with pytest.raises(TypeError, match="must be a class"):
            ClientFactory.default().create_client("Greeter", recording_channel)


class TestConfiguredFactory:
    """Test factories bound to an explicit configuration."""

    def test_caches_within_factory(self, mapper_spy, recording_channel):
        """Test that a configured factory maps each contract once."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.create(demo_configuration())

        first = factory.create_client(Greeter, recording_channel)
        second = factory.create_client(Greeter, recording_channel)

        assert type(first) is type(second) is factory.get_client_type(Greeter)
        assert mapper_spy.count(Greeter) == 1
        assert factory.cached_contracts == [Greeter]

    def test_factories_cache_independently(self, mapper_spy):
        """Test that separate factories with equal configurations do not share entries."""
        Greeter = make_greeter_contract()
        config = demo_configuration()

        first = ClientFactory.create(config).get_client_type(Greeter)
        second = ClientFactory.create(config).get_client_type(Greeter)

        assert first is not second
        assert mapper_spy.count(Greeter) == 2

    def test_configured_type_differs_from_default(self, recording_channel):
        """Test that configurations never share a generated adapter."""
        Greeter = make_greeter_contract()

        default_a = ClientFactory.default().create_client(Greeter, recording_channel)
        default_b = ClientFactory.default().create_client(Greeter, recording_channel)
        configured = ClientFactory.create(demo_configuration()).create_client(Greeter, recording_channel)

        assert type(default_a) is type(default_b)
        assert type(configured) is not type(default_a)
        assert type(configured).binder_configuration == demo_configuration()
        assert type(configured).operations["say_hello"].full_name == "/demo.Greeter/say_hello"

    def test_racing_builds_publish_one_canonical_type(self, monkeypatch, recording_channel):
        """Test that concurrent first use yields one concrete type even with redundant builds."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.create(demo_configuration())
        real_map_contract = mapping.map_contract
        workers = 8
        barrier = threading.Barrier(workers, timeout=5)
        builds = []
        lock = threading.Lock()

        def racing_map_contract(contract_type, configuration):
            # Every worker misses the cache before anyone publishes.
            barrier.wait()
            plan = real_map_contract(contract_type, configuration)
            with lock:
                builds.append(plan.concrete_type)
            return plan

        monkeypatch.setattr(mapping, "map_contract", racing_map_contract)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            clients = list(pool.map(lambda _: factory.create_client(Greeter, recording_channel), range(workers)))

        assert len(builds) == workers
        assert len(set(builds)) == workers
        assert len({type(c) for c in clients}) == 1
        assert type(clients[0]) is factory.get_client_type(Greeter)

    def test_failed_build_propagates_every_time(self, mapper_spy, recording_channel):
        """Test that a failing contract is never published and always retried."""

        class BadContract:
            pass

        factory = ClientFactory.create(demo_configuration())

        for _ in range(3):
            with pytest.raises(ContractError):
                factory.create_client(BadContract, recording_channel)

        assert mapper_spy.count(BadContract) == 3
        assert factory.cached_contracts == []

    def test_mapping_errors_are_not_translated(self, monkeypatch):
        """Test that arbitrary mapping-engine errors reach the caller unchanged."""

        def broken_map_contract(contract_type, configuration):
            raise RuntimeError("engine exploded")

        monkeypatch.setattr(mapping, "map_contract", broken_map_contract)
        Greeter = make_greeter_contract()

        with pytest.raises(RuntimeError, match="engine exploded"):
            ClientFactory.create(demo_configuration()).get_client_type(Greeter)

    def test_entry_factory_is_used_for_instances(self, monkeypatch, recording_channel):
        """Test that create_client goes through the published entry's factory."""
        Greeter = make_greeter_contract()
        real_plan = mapping.map_contract(Greeter, demo_configuration())
        made = []

        def factory_fn(channel):
            made.append(channel)
            return real_plan.concrete_type(channel)

        monkeypatch.setattr(
            mapping,
            "map_contract",
            lambda contract_type, configuration: ProxyPlan(
                factory=factory_fn,
                concrete_type=real_plan.concrete_type,
                description=real_plan.description,
            ),
        )

        client = ClientFactory.create(demo_configuration()).create_client(Greeter, recording_channel)

        assert made == [recording_channel]
        assert type(client) is real_plan.concrete_type


class TestCreateAdapter:
    """Test the deferred ContractClient handle."""

    def test_resolution_is_deferred(self, mapper_spy, recording_channel):
        """Test that create_adapter does not map the contract eagerly."""
        Greeter = make_greeter_contract()

        adapter = ClientFactory.default().create_adapter(recording_channel, Greeter)

        assert isinstance(adapter, ContractClient)
        assert mapper_spy.count(Greeter) == 0

        service = adapter.as_contract()

        assert mapper_spy.count(Greeter) == 1
        assert adapter.as_contract() is service
        assert adapter.client_type is type(service)

    def test_adapter_carries_call_context(self, recording_channel):
        """Test that the handle records channel, contract and configuration."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.create(demo_configuration())

        adapter = factory.create_adapter(recording_channel, Greeter)

        assert adapter.channel is recording_channel
        assert adapter.contract_type is Greeter
        assert adapter.binder_configuration is factory.binder_configuration
        assert "deferred" in repr(adapter)

    def test_adapter_resolves_through_owning_factory(self, recording_channel):
        """Test that resolution reuses the owning factory's cache."""
        Greeter = make_greeter_contract()
        factory = ClientFactory.create(demo_configuration())

        service = factory.create_adapter(recording_channel, Greeter).as_contract()

        assert type(service) is factory.get_client_type(Greeter)
        reply = service.say_hello(HelloRequest(name="x"))
        assert reply == HelloReply(message="canned")

    def test_adapter_rejects_non_class(self, recording_channel):
        """Test that create_adapter validates the contract type."""
        with pytest.raises(TypeError):
            ClientFactory.default().create_adapter(recording_channel, object())
