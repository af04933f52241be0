import pytest

from regroute.provider.errors import ConfigurationError, RenderError
from regroute.provider.rules import (
    DEFAULT_FRONTEND_RULE,
    MAX_RULE_LENGTH,
    RuleTemplateEngine,
    translate_actions,
)
from regroute.provider.tags import TagAccessor


@pytest.fixture
def engine() -> RuleTemplateEngine:
    return RuleTemplateEngine(
        domain="localhost",
        accessor=TagAccessor(prefix="traefik"),
        default_rule=DEFAULT_FRONTEND_RULE,
    )


def test_default_rule(engine: RuleTemplateEngine) -> None:
    assert engine.render("foo", []) == "Host:foo.localhost"


def test_override_rule_used_verbatim(engine: RuleTemplateEngine) -> None:
    attributes = ["traefik.frontend.rule=Host:*.example.com"]
    assert engine.render("foo", attributes) == "Host:*.example.com"


def test_override_rule_is_a_template(engine: RuleTemplateEngine) -> None:
    attributes = ["traefik.frontend.rule=Host:{{.ServiceName}}.example.com"]
    assert engine.render("foo", attributes) == "Host:foo.example.com"


def test_override_rule_with_tag_lookup(engine: RuleTemplateEngine) -> None:
    attributes = [
        'traefik.frontend.rule=PathPrefix:{{getTag "contextPath" .Attributes "/"}}',
        "contextPath=/bar",
    ]
    assert engine.render("foo", attributes) == "PathPrefix:/bar"


def test_tag_lookup_default(engine: RuleTemplateEngine) -> None:
    attributes = [
        'traefik.frontend.rule=PathPrefix:{{getTag "contextPath" .Attributes "/"}}',
    ]
    assert engine.render("foo", attributes) == "PathPrefix:/"


def test_get_attribute_helper_uses_prefix(engine: RuleTemplateEngine) -> None:
    attributes = [
        'traefik.frontend.rule=Host:{{getAttribute "host" .Attributes "x.org"}}',
        "traefik.host=api.example.org",
    ]
    assert engine.render("foo", attributes) == "Host:api.example.org"


def test_native_jinja_expressions(engine: RuleTemplateEngine) -> None:
    attributes = [
        "traefik.frontend.rule=Host:{{ ServiceName | upper }}.{{ Domain }}",
    ]
    assert engine.render("foo", attributes) == "Host:FOO.localhost"


def test_empty_override_uses_default(engine: RuleTemplateEngine) -> None:
    assert engine.render("foo", ["traefik.frontend.rule="]) == "Host:foo.localhost"


def test_broken_override_falls_back_to_default(engine: RuleTemplateEngine) -> None:
    attributes = ["traefik.frontend.rule=Host:{{.Missing}}"]
    assert engine.render("foo", attributes) == "Host:foo.localhost"
    attributes = ["traefik.frontend.rule=Host:{{ ServiceName | }}"]
    assert engine.render("foo", attributes) == "Host:foo.localhost"


def test_render_override_raises_render_error(engine: RuleTemplateEngine) -> None:
    with pytest.raises(RenderError) as excinfo:
        engine.render_override("foo", [], "Host:{{.Missing}}")
    assert excinfo.value.service_name == "foo"


def test_sandbox_blocks_unsafe_attribute_access(engine: RuleTemplateEngine) -> None:
    with pytest.raises(RenderError):
        engine.render_override("foo", [], "{{ Attributes.__class__.__mro__[1] }}")


def test_bad_default_template_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        RuleTemplateEngine(domain="localhost", default_rule="Host:{{ .ServiceName")


def test_default_rule_render_failure_raises() -> None:
    engine = RuleTemplateEngine(domain="localhost", default_rule="Host:{{.Unknown}}")
    with pytest.raises(RenderError):
        engine.render("foo", [])


def test_translate_actions() -> None:
    helpers = frozenset({"getTag"})
    assert translate_actions("{{.ServiceName}}", helpers) == "{{ ServiceName }}"
    assert (
        translate_actions('{{getTag "a" .Attributes "/"}}', helpers)
        == '{{ getTag("a", Attributes, "/") }}'
    )
    assert translate_actions("{{getTag}}", helpers) == "{{ getTag() }}"
    assert translate_actions("{{- .Domain -}}", helpers) == "{{- Domain -}}"
    assert translate_actions("{{`raw`}}", helpers) == "{{ 'raw' }}"
    assert translate_actions("{{ a | b }}", helpers) == "{{ a | b }}"
    assert translate_actions("plain text", helpers) == "plain text"


def test_lookup_tag_alias(engine: RuleTemplateEngine) -> None:
    attributes = [
        'traefik.frontend.rule=PathPrefix:{{lookupTag "contextPath" .Attributes "/"}}',
        "contextPath=/docs",
    ]
    assert engine.render("foo", attributes) == "PathPrefix:/docs"


@pytest.mark.parametrize(
    "source",
    [
        "Host:{{ lipsum(1, html=False) }}",
        "Host:{{ cycler }}",
        "Host:{{ range(10) }}",
        "Host:{{ ServiceName | center(100) }}",
        "Host:{{ ServiceName is divisibleby(3) }}",
    ],
)
def test_only_registered_names_are_available(
    engine: RuleTemplateEngine, source: str
) -> None:
    with pytest.raises(RenderError):
        engine.render_override("foo", [], source)
    assert engine.render("foo", [f"traefik.frontend.rule={source}"]) == (
        "Host:foo.localhost"
    )


@pytest.mark.parametrize(
    "source",
    [
        'Host:{{ "x" * 30000000 }}',
        "Host:{{ Attributes * 1000 }}",
        'Host:{{ "%99999999s" % ServiceName }}',
        "Host:{{ 10 ** 100000 }}",
        "Host:{{ ServiceName.center(100000000) }}",
        'Host:{{ "{:>99999999}".format(ServiceName) }}',
    ],
)
def test_rule_growth_is_rejected(engine: RuleTemplateEngine, source: str) -> None:
    with pytest.raises(RenderError):
        engine.render_override("foo", [], source)
    assert engine.render("foo", [f"traefik.frontend.rule={source}"]) == (
        "Host:foo.localhost"
    )


def test_numeric_arithmetic_still_works(engine: RuleTemplateEngine) -> None:
    assert engine.render_override("foo", [], "Path:/v{{ 2 * 3 }}") == "Path:/v6"


def test_statement_blocks_are_literal_text(engine: RuleTemplateEngine) -> None:
    source = "Host:{% for i in range(100000) %}x{% endfor %}"
    assert engine.render_override("foo", [], source) == source


def test_overlong_rule_is_rejected(engine: RuleTemplateEngine) -> None:
    attributes = [
        'traefik.frontend.rule=Host:{{getTag "long" .Attributes ""}}',
        "long=" + "a" * (MAX_RULE_LENGTH + 1),
    ]
    assert engine.render("foo", attributes) == "Host:foo.localhost"
