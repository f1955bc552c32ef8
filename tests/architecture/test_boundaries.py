from pytest_archon import archrule


def test_core_is_broker_independent() -> None:
    """
    Everything outside the rabbitmq adapter must work without aio-pika.
    The rabbitmq extra is optional.
    """
    (
        archrule("core_is_broker_independent")
        .match("cqrs_ddd_amqp*")
        .exclude("cqrs_ddd_amqp.rabbitmq*")
        .should_not_import("aio_pika*")
        .should_not_import("aiormq*")
        .should_not_import("cqrs_ddd_amqp.rabbitmq*")
        .check("cqrs_ddd_amqp")
    )


def test_value_types_isolation() -> None:
    """
    Address, topology and message are the lowest level.
    They must not import from the template, listeners or adapters.
    """
    (
        archrule("value_types_isolation")
        .match("cqrs_ddd_amqp.address")
        .match("cqrs_ddd_amqp.topology")
        .match("cqrs_ddd_amqp.message")
        .match("cqrs_ddd_amqp.exceptions")
        .should_not_import("cqrs_ddd_amqp.template")
        .should_not_import("cqrs_ddd_amqp.listener*")
        .should_not_import("cqrs_ddd_amqp.memory*")
        .should_not_import("cqrs_ddd_amqp.rabbitmq*")
        .check("cqrs_ddd_amqp")
    )


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on Adapters (implementations).
    """
    (
        archrule("ports_layering")
        .match("cqrs_ddd_amqp.ports*")
        .should_not_import("cqrs_ddd_amqp.memory*")
        .should_not_import("cqrs_ddd_amqp.rabbitmq*")
        .should_not_import("cqrs_ddd_amqp.listener*")
        .should_not_import("cqrs_ddd_amqp.template")
        .check("cqrs_ddd_amqp")
    )


def test_listener_adapters_isolation() -> None:
    """
    Listener dispatch talks to the broker only through the ports.
    """
    (
        archrule("listener_adapters_isolation")
        .match("cqrs_ddd_amqp.listener*")
        .match("cqrs_ddd_amqp.template")
        .should_not_import("cqrs_ddd_amqp.memory*")
        .should_not_import("cqrs_ddd_amqp.rabbitmq*")
        .check("cqrs_ddd_amqp")
    )
