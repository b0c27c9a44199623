"""Template definitions and rendering.

Templates are Jinja2 strings rendered against a per-plugin context. A
template with ``each = true`` is rendered once per matched file with
``file`` bound; otherwise it is rendered once with the whole ``files`` list.
Undefined variables are errors, never silently empty strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

from jinja2 import Environment, StrictUndefined, Template, TemplateError
from pydantic import BaseModel, ConfigDict, model_validator

from sheaf.errors import RenderError


class Shell(str, Enum):
    """Supported shell dialects."""

    BASH = "bash"
    ZSH = "zsh"


class TemplateDef(BaseModel):
    """A named template string.

    In the config a template is either a bare string or a table with
    ``value`` and ``each`` keys.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    value: str
    each: bool = False

    @model_validator(mode="before")
    @classmethod
    def from_string(cls, data: Any) -> Any:
        """Accept a bare string as shorthand for ``{value = ...}``."""
        if isinstance(data, str):
            return {"value": data}
        return data


DEFAULT_APPLY = ["source"]

SOURCE_TEMPLATE = (
    '{% if "pre" in hooks %}{{ hooks.pre }}\n{% endif %}'
    'source "{{ file }}"'
    '{% if "post" in hooks %}\n{{ hooks.post }}{% endif %}'
)

_BASH_TEMPLATES = {
    "PATH": TemplateDef(value='export PATH="{{ dir }}:$PATH"'),
    "source": TemplateDef(value=SOURCE_TEMPLATE, each=True),
}

_ZSH_TEMPLATES = {
    "PATH": TemplateDef(value='export PATH="{{ dir }}:$PATH"'),
    "path": TemplateDef(value='path=( "{{ dir }}" $path )'),
    "fpath": TemplateDef(value='fpath=( "{{ dir }}" $fpath )'),
    "source": TemplateDef(value=SOURCE_TEMPLATE, each=True),
}


def default_templates(shell: Shell) -> dict[str, TemplateDef]:
    """Return a fresh copy of the built-in templates for a shell."""
    if shell == Shell.BASH:
        return dict(_BASH_TEMPLATES)
    return dict(_ZSH_TEMPLATES)


def effective_templates(
    shell: Shell, user_templates: dict[str, TemplateDef]
) -> dict[str, TemplateDef]:
    """Merge user templates over the shell's built-ins.

    User templates win on name clashes. Built-ins keep their position,
    new user templates are appended in declaration order.
    """
    merged = default_templates(shell)
    merged.update(user_templates)
    return merged


_ENV = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


@lru_cache(maxsize=256)
def compile_template(source: str) -> Template:
    """Compile a template string.

    Raises:
        jinja2.TemplateSyntaxError: If the template is malformed.
    """
    return _ENV.from_string(source)


def render_string(source: str, data: dict[str, Any]) -> str:
    """Render a one-off template string, e.g. a glob pattern or ``dir`` value.

    Raises:
        jinja2.TemplateError: If the template fails to compile or render.
    """
    return compile_template(source).render(**data)


@dataclass(frozen=True)
class PluginRenderContext:
    """Everything a template may reference for a single plugin."""

    name: str
    dir: str | None = None
    files: tuple[str, ...] = ()
    hooks: dict[str, str] = field(default_factory=dict)
    data_dir: str | None = None

    def variables(self) -> dict[str, Any]:
        """Template variables. Absent values stay undefined so they fail loudly."""
        data: dict[str, Any] = {
            "name": self.name,
            "files": list(self.files),
            "hooks": dict(self.hooks),
        }
        if self.dir is not None:
            data["dir"] = self.dir
        if self.data_dir is not None:
            data["data_dir"] = self.data_dir
        return data


def render(template: TemplateDef, context: PluginRenderContext) -> str:
    """Render a template for one plugin.

    Args:
        template: The template to render.
        context: The plugin's render context.

    Returns:
        The rendered fragment. For ``each`` templates, one fragment per file
        joined with newlines in file order.

    Raises:
        jinja2.TemplateError: If the template fails to compile or render.
    """
    compiled = compile_template(template.value)
    data = context.variables()
    if not template.each:
        return compiled.render(**data)
    return "\n".join(compiled.render(**data, file=file) for file in context.files)


def _terminate(fragment: str) -> str:
    if fragment and not fragment.endswith("\n"):
        return fragment + "\n"
    return fragment


def render_plugin(
    context: PluginRenderContext,
    apply: list[str],
    templates: dict[str, TemplateDef],
) -> str:
    """Render every applied template for a plugin, in ``apply`` order.

    Raises:
        RenderError: If a template is unknown or fails to render.
    """
    out = []
    for name in apply:
        template = templates.get(name)
        if template is None:
            raise RenderError(context.name, f"unknown template `{name}`")
        try:
            out.append(_terminate(render(template, context)))
        except TemplateError as e:
            raise RenderError(context.name, f"failed to render template `{name}`: {e}") from e
    return "".join(out)


def render_inline(raw: str, context: PluginRenderContext) -> str:
    """Render an inline plugin's raw script.

    Raises:
        RenderError: If the script fails to compile or render.
    """
    try:
        return _terminate(render_string(raw, context.variables()))
    except TemplateError as e:
        raise RenderError(context.name, f"failed to render inline plugin: {e}") from e
