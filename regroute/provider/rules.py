"""Frontend rule templates.

Rules are rendered with a sandboxed Jinja2 environment that only exposes
the tag helpers registered below. Operators usually write rules in the
short action form used by registry tags::

    Host:{{.ServiceName}}.{{.Domain}}
    PathPrefix:{{getTag "contextPath" .Attributes "/"}}

Those actions are rewritten into Jinja expressions before compilation, so
``{{ ServiceName }}`` and ``{{ getTag("contextPath", Attributes, "/") }}``
are accepted as well.

Only expression actions are evaluated. Statement blocks such as
``{% for %}`` are kept as literal text, and only the filters and tests in
ALLOWED_FILTERS and ALLOWED_TESTS are available.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from jinja2 import StrictUndefined, Template, TemplateError
from jinja2.exceptions import SecurityError
from jinja2.runtime import Context
from jinja2.sandbox import SandboxedEnvironment
from loguru import logger

from regroute.datastructures.type_aliases import (
    DomainSuffix,
    RuleString,
    RuleTemplateSource,
    ServiceName,
    Tag,
    TemplateContext,
)

from .errors import ConfigurationError, RenderError
from .tags import TagAccessor, get_tag, has_tag

DEFAULT_FRONTEND_RULE: RuleTemplateSource = "Host:{{.ServiceName}}.{{.Domain}}"
FRONTEND_RULE_ATTRIBUTE = "frontend.rule"

_ACTION_RE = re.compile(r"\{\{(-?)(.*?)(-?)\}\}", re.DOTALL)
_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<raw>`[^`]*`)
      | (?P<field>\.[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)
      | (?P<number>-?\d+)
      | (?P<name>[A-Za-z_]\w*)
    )""",
    re.VERBOSE,
)
_OVERRIDE_CACHE_LIMIT = 512
MAX_RULE_LENGTH = 4096

# Statement blocks are disabled: only {{ }} actions are evaluated.
_DISABLED_BLOCK_START = "\x00{%"
_DISABLED_BLOCK_END = "%}\x00"

ALLOWED_FILTERS = frozenset(
    {"default", "first", "int", "last", "length", "lower", "string", "trim", "upper"}
)
ALLOWED_TESTS = frozenset(
    {"defined", "eq", "in", "ne", "none", "string", "undefined"}
)


def _tokenize(body: str) -> list[tuple[str, str]] | None:
    tokens: list[tuple[str, str]] = []
    position = 0
    stripped = body.rstrip()
    while position < len(stripped):
        match = _TOKEN_RE.match(stripped, position)
        if match is None or match.end() == position:
            return None
        kind = match.lastgroup
        assert kind is not None
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


def _operand(kind: str, text: str) -> str:
    if kind == "field":
        return text[1:]
    if kind == "raw":
        return repr(text[1:-1])
    return text


def translate_actions(source: str, helpers: frozenset[str]) -> str:
    """Rewrite ``{{fn "a" .Field}}`` actions into Jinja call expressions.

    Actions that are not in the short form are left untouched.
    """

    def _rewrite(match: re.Match[str]) -> str:
        left_trim, body, right_trim = match.groups()
        tokens = _tokenize(body)
        if not tokens:
            return match.group(0)
        head_kind, head = tokens[0]
        if len(tokens) == 1:
            if head_kind == "name" and head in helpers:
                expression = f"{head}()"
            else:
                expression = _operand(head_kind, head)
        elif head_kind == "name":
            arguments = ", ".join(_operand(kind, text) for kind, text in tokens[1:])
            expression = f"{head}({arguments})"
        else:
            return match.group(0)
        return f"{{{{{left_trim} {expression} {right_trim}}}}}"

    return _ACTION_RE.sub(_rewrite, source)


class RuleSandbox(SandboxedEnvironment):
    """Sandbox that only calls registered helpers and bounds rule growth."""

    intercepted_binops = frozenset({"*", "**", "%"})

    def __init__(self, helpers: dict[str, Callable[..., object]]) -> None:
        super().__init__(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            block_start_string=_DISABLED_BLOCK_START,
            block_end_string=_DISABLED_BLOCK_END,
        )
        self.filters = {
            name: func
            for name, func in self.filters.items()
            if name in ALLOWED_FILTERS
        }
        self.tests = {
            name: func for name, func in self.tests.items() if name in ALLOWED_TESTS
        }
        self.globals = dict(helpers)
        self._helpers = tuple(helpers.values())

    def is_safe_callable(self, obj: Any) -> bool:
        return any(obj == helper for helper in self._helpers)

    def call(self, context: Context, obj: Any, /, *args: Any, **kwargs: Any) -> Any:
        if not self.is_safe_callable(obj):
            raise SecurityError(f"{obj!r} is not a registered rule helper")
        return super().call(context, obj, *args, **kwargs)

    def call_binop(
        self, context: Context, operator: str, left: Any, right: Any
    ) -> Any:
        if operator == "*" and not (
            isinstance(left, (int, float)) and isinstance(right, (int, float))
        ):
            raise SecurityError("sequence repetition is not allowed in rules")
        if operator == "%" and isinstance(left, str):
            raise SecurityError("string formatting is not allowed in rules")
        if operator == "**":
            raise SecurityError("exponentiation is not allowed in rules")
        return super().call_binop(context, operator, left, right)


@dataclass(slots=True)
class RuleTemplateEngine:
    """Compile the default rule once and render per-service rules."""

    domain: DomainSuffix
    accessor: TagAccessor = field(default_factory=TagAccessor)
    default_rule: RuleTemplateSource = DEFAULT_FRONTEND_RULE
    _environment: RuleSandbox = field(init=False)
    _default_template: Template = field(init=False)
    _override_cache: dict[RuleTemplateSource, Template] = field(
        init=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        self._environment = RuleSandbox(self.helpers())
        try:
            self._default_template = self._compile(self.default_rule)
        except TemplateError as exc:
            raise ConfigurationError(
                f"Invalid frontend rule template {self.default_rule!r}: {exc}"
            ) from exc

    def helpers(self) -> dict[str, Callable[..., object]]:
        accessor = self.accessor
        return {
            "getTag": get_tag,
            "lookupTag": get_tag,
            "hasTag": has_tag,
            "getAttribute": accessor.get_attribute,
            "getPrefixedName": accessor.get_prefixed_name,
        }

    def _compile(self, source: RuleTemplateSource) -> Template:
        translated = translate_actions(source, frozenset(self.helpers()))
        return self._environment.from_string(translated)

    def context(
        self, service_name: ServiceName, attributes: Sequence[Tag]
    ) -> TemplateContext:
        return {
            "ServiceName": service_name,
            "Domain": self.domain,
            "Attributes": list(attributes),
        }

    def _render(
        self,
        template: Template,
        service_name: ServiceName,
        attributes: Sequence[Tag],
    ) -> RuleString:
        rule = template.render(self.context(service_name, attributes))
        if len(rule) > MAX_RULE_LENGTH:
            raise RenderError(
                service_name, f"rule longer than {MAX_RULE_LENGTH} characters"
            )
        return rule

    def render_default(
        self, service_name: ServiceName, attributes: Sequence[Tag]
    ) -> RuleString:
        try:
            return self._render(self._default_template, service_name, attributes)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(service_name, str(exc)) from exc

    def render_override(
        self,
        service_name: ServiceName,
        attributes: Sequence[Tag],
        source: RuleTemplateSource,
    ) -> RuleString:
        try:
            template = self._override_cache.get(source)
            if template is None:
                if len(self._override_cache) >= _OVERRIDE_CACHE_LIMIT:
                    self._override_cache.clear()
                template = self._compile(source)
                self._override_cache[source] = template
            return self._render(template, service_name, attributes)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(service_name, str(exc)) from exc

    def render(
        self, service_name: ServiceName, attributes: Sequence[Tag]
    ) -> RuleString:
        """Rule for a service: its ``frontend.rule`` override, else the default.

        A failing override is logged and replaced by the default rule. A
        failing default raises RenderError.
        """
        source = self.accessor.lookup_attribute(FRONTEND_RULE_ATTRIBUTE, attributes)
        if source:
            try:
                return self.render_override(service_name, attributes, source)
            except RenderError as exc:
                logger.warning(
                    "Falling back to default frontend rule for {}: {}",
                    service_name,
                    exc,
                )
        return self.render_default(service_name, attributes)
