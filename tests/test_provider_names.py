from regroute.datastructures.catalog_types import ServiceInstance
from regroute.provider.names import (
    backend_id,
    frontend_id,
    route_id,
    rule_kind,
    sanitize_component,
    server_id,
)


def _instance(tags: tuple[str, ...]) -> ServiceInstance:
    return ServiceInstance(service_name="api", address="10.0.0.1", port=80, tags=tags)


def test_server_id_without_tags() -> None:
    assert server_id(_instance(()), 0) == "api--10-0-0-1--80--0"


def test_server_id_with_tags() -> None:
    instance = _instance(("traefik.weight=42", "traefik.enable=true"))
    assert (
        server_id(instance, 1)
        == "api--10-0-0-1--80--traefik-weight-42--traefik-enable-true--1"
    )


def test_server_id_sanitizes_whitespace() -> None:
    instance = _instance(("a funny looking tag",))
    assert server_id(instance, 2) == "api--10-0-0-1--80--a-funny-looking-tag--2"


def test_server_id_keeps_tag_case_and_lowercases_service() -> None:
    instance = ServiceInstance(
        service_name="API",
        address="10.0.0.1",
        port=80,
        tags=("traefik.backend.passHostHeader=true",),
    )
    assert (
        server_id(instance, 0)
        == "api--10-0-0-1--80--traefik-backend-passHostHeader-true--0"
    )


def test_server_id_uses_node_address_when_instance_has_none() -> None:
    instance = ServiceInstance(service_name="api", node_address="10.1.0.1", port=80)
    assert server_id(instance, 0) == "api--10-1-0-1--80--0"


def test_ordinal_disambiguates_identical_instances() -> None:
    instance = _instance(("same",))
    assert server_id(instance, 0) != server_id(instance, 1)
    assert server_id(instance, 3) == server_id(_instance(("same",)), 3)


def test_sanitize_component() -> None:
    assert sanitize_component("fe80::1") == "fe80--1"
    assert sanitize_component("a_b/c:d") == "a-b-c-d"
    assert sanitize_component("keep-dash-9") == "keep-dash-9"
    assert sanitize_component("é") == "-"


def test_entity_ids() -> None:
    assert frontend_id("test") == "frontend-test"
    assert backend_id("test") == "backend-test"
    assert route_id("test") == "route-host-test"
    assert route_id("test", "pathprefix") == "route-pathprefix-test"


def test_rule_kind() -> None:
    assert rule_kind("Host:test.localhost") == "host"
    assert rule_kind("PathPrefix:/bar") == "pathprefix"
    assert rule_kind("Host:a.org;Path:/x") == "host"
    assert rule_kind("no matcher") == "host"
