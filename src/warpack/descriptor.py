"""WEB-INF/web.xml generation."""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined, select_autoescape

from warpack.errors import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

    from warpack.config import WarConfig

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "web.xml.j2"

SERVLET_CONTEXT_LISTENERS: dict[str, str] = {
    "rails": "org.jruby.rack.rails.RailsServletContextListener",
    "merb": "org.jruby.rack.merb.MerbServletContextListener",
    "rack": "org.jruby.rack.RackServletContextListener",
}

# Keys consumed by the template itself rather than emitted as context-params.
RESERVED_KEYS = frozenset({"booter", "servlet_context_listener"})


def descriptor_context(config: WarConfig) -> dict[str, Any]:
    webxml = dict(config.webxml)
    booter = str(webxml.get("booter", "rails"))
    listener = webxml.get("servlet_context_listener") or SERVLET_CONTEXT_LISTENERS.get(booter)
    if listener is None:
        raise ConfigError(
            f"Unknown booter `{booter}`; set webxml.servlet_context_listener explicitly"
        )
    params = sorted(
        (key, _render_value(value)) for key, value in webxml.items() if key not in RESERVED_KEYS
    )
    return {
        "war_name": config.war_name,
        "context_params": params,
        "servlet_context_listener": listener,
    }


def render_web_xml(config: WarConfig, template_path: Path | None = None) -> str:
    """Render the descriptor from ``template_path`` or the packaged default."""
    if template_path is not None:
        env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            autoescape=select_autoescape(default=True),
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        template = env.get_template(template_path.name)
    else:
        env = Environment(
            loader=PackageLoader("warpack", "templates"),
            autoescape=select_autoescape(default=True),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        template = env.get_template(DEFAULT_TEMPLATE)
    return template.render(**descriptor_context(config))


def generate_web_xml(config: WarConfig) -> Path:
    """Write ``<staging>/WEB-INF/web.xml``.

    ``config/web.xml`` is copied verbatim when present; otherwise
    ``config/web.xml.j2`` or the packaged template is rendered.
    """
    web_inf = config.staging_dir / "WEB-INF"
    web_inf.mkdir(parents=True, exist_ok=True)
    output = web_inf / "web.xml"

    static_descriptor = config.base_dir / "config" / "web.xml"
    if static_descriptor.is_file():
        shutil.copy2(static_descriptor, output)
        logger.info("copied %s to %s", static_descriptor, output)
        return output

    custom_template = config.base_dir / "config" / "web.xml.j2"
    template_path = custom_template if custom_template.is_file() else None
    output.write_text(render_web_xml(config, template_path), encoding="utf-8")
    logger.info("generated %s", output)
    return output


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
