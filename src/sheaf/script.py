"""Render the shell script for a lock document."""

from sheaf.lock_schema import LockDocument, LockedPlugin
from sheaf.templates import PluginRenderContext, TemplateDef, render_inline, render_plugin


def plugin_context(plugin: LockedPlugin, data_dir: str | None) -> PluginRenderContext:
    """Build the template context for a locked plugin."""
    return PluginRenderContext(
        name=plugin.name,
        dir=plugin.dir,
        files=tuple(plugin.files),
        hooks=dict(plugin.hooks),
        data_dir=data_dir,
    )


def render_locked_plugin(
    plugin: LockedPlugin,
    templates: dict[str, TemplateDef],
    data_dir: str | None,
) -> str:
    """Render one plugin's part of the script.

    Raises:
        RenderError: If a template is unknown or fails to render.
    """
    context = plugin_context(plugin, data_dir)
    if plugin.is_inline:
        return render_inline(plugin.raw, context)
    return render_plugin(context, plugin.apply, templates)


def render_script(document: LockDocument) -> str:
    """Render the full shell script, one plugin after another in lock order.

    Raises:
        RenderError: If any plugin fails to render.
    """
    return "".join(
        render_locked_plugin(plugin, document.templates, document.data_dir)
        for plugin in document.plugins
    )
