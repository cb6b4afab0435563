from __future__ import annotations

from pathlib import Path

import pytest

from warpack.config import config_from_dict
from warpack.descriptor import descriptor_context, generate_web_xml, render_web_xml
from warpack.errors import ConfigError


def test_default_descriptor_lists_sorted_context_params(tmp_path: Path) -> None:
    config = config_from_dict({"war_name": "shop"}, base_dir=tmp_path)

    context = descriptor_context(config)

    assert context["war_name"] == "shop"
    assert context["context_params"] == [
        ("jruby.max.runtimes", "5"),
        ("jruby.min.runtimes", "1"),
        ("rails.env", "production"),
    ]
    assert context["servlet_context_listener"] == "org.jruby.rack.rails.RailsServletContextListener"


def test_rendered_descriptor_contains_listener_and_filter(tmp_path: Path) -> None:
    config = config_from_dict(
        {"webxml": {"booter": "rack", "rackup": "run App & friends", "jruby.compat.version": True}},
        base_dir=tmp_path,
    )

    xml = render_web_xml(config)

    assert "<display-name>" in xml
    assert "<param-name>rackup</param-name>" in xml
    assert "<param-value>run App &amp; friends</param-value>" in xml
    assert "<param-value>true</param-value>" in xml
    assert "org.jruby.rack.RackServletContextListener" in xml
    assert "<filter-class>org.jruby.rack.RackFilter</filter-class>" in xml
    assert "booter" not in xml


def test_unknown_booter_requires_explicit_listener(tmp_path: Path) -> None:
    config = config_from_dict({"webxml": {"booter": "sinatra"}}, base_dir=tmp_path)

    with pytest.raises(ConfigError, match="sinatra"):
        descriptor_context(config)

    explicit = config_from_dict(
        {"webxml": {"booter": "sinatra", "servlet_context_listener": "com.example.Listener"}},
        base_dir=tmp_path,
    )
    assert descriptor_context(explicit)["servlet_context_listener"] == "com.example.Listener"


def test_generate_copies_static_descriptor(tmp_path: Path) -> None:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "web.xml").write_text("<web-app/>\n", encoding="utf-8")
    config = config_from_dict({}, base_dir=tmp_path)

    output = generate_web_xml(config)

    assert output == config.staging_dir / "WEB-INF" / "web.xml"
    assert output.read_text(encoding="utf-8") == "<web-app/>\n"


def test_generate_renders_application_template(tmp_path: Path) -> None:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "web.xml.j2").write_text(
        "<web-app name=\"{{ war_name }}\">{{ servlet_context_listener }}</web-app>\n",
        encoding="utf-8",
    )
    config = config_from_dict({"war_name": "shop"}, base_dir=tmp_path)

    output = generate_web_xml(config)

    assert output.read_text(encoding="utf-8") == (
        '<web-app name="shop">org.jruby.rack.rails.RailsServletContextListener</web-app>\n'
    )


def test_generate_renders_default_template(tmp_path: Path) -> None:
    config = config_from_dict({"war_name": "shop"}, base_dir=tmp_path)

    xml = generate_web_xml(config).read_text(encoding="utf-8")

    assert xml.startswith("<!DOCTYPE web-app")
    assert "<display-name>shop</display-name>" in xml
