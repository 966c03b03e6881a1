from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from jinja2 import UndefinedError
from markupsafe import Markup

from sitkin.errors import ProjectStructureError, TemplateLoadError
from sitkin.templates import TemplateRegistry, rfc3339, xml_escape

DEFAULT = "<body>{% block contents %}{{ contents }}{% endblock %}</body>"


def make_registry(tmp_path: Path, default: str = DEFAULT, hashed=None) -> TemplateRegistry:
    sitkin_dir = tmp_path / "sitkin"
    sitkin_dir.mkdir(exist_ok=True)
    (sitkin_dir / "default.tmpl").write_text(default, encoding="utf-8")
    hashed = hashed or {}
    registry = TemplateRegistry(
        [sitkin_dir, tmp_path], link=lambda href: hashed.get(href, href)
    )
    registry.load_default(sitkin_dir / "default.tmpl")
    return registry


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_default_template_renders_contents(tmp_path):
    registry = make_registry(tmp_path)
    html = registry.default.render(contents=Markup("<p>hi</p>"))
    assert html == "<body><p>hi</p></body>"
    assert "default" in registry


def test_named_template_overrides_blocks(tmp_path):
    registry = make_registry(tmp_path)
    path = write(
        tmp_path / "sitkin" / "posts.tmpl",
        "ignored text\n{% block contents %}[{{ metadata.title }}]{{ contents }}{% endblock %}\n",
    )
    registry.add(path)

    html = registry.get("posts").render(
        contents=Markup("<p>x</p>"), metadata={"title": "T"}
    )
    assert html == "<body>[T]<p>x</p></body>"
    assert registry.names() == ["default", "posts"]
    assert registry.get("missing") is None


def test_template_without_blocks_renders_default(tmp_path):
    registry = make_registry(tmp_path)
    path = write(tmp_path / "plain.tmpl", "nothing to override")
    tmpl = registry.parse_html_file(path)
    assert tmpl.render(contents="c") == "<body>c</body>"


def test_template_may_extend_explicitly(tmp_path):
    registry = make_registry(tmp_path)
    write(tmp_path / "sitkin" / "base.html", "<main>{% block main %}{% endblock %}</main>")
    path = write(
        tmp_path / "page.tmpl",
        '{% extends "base.html" %}{% block main %}page{% endblock %}',
    )
    assert registry.parse_html_file(path).render() == "<main>page</main>"


def test_html_escapes_and_text_does_not(tmp_path):
    registry = make_registry(tmp_path)
    html_path = write(tmp_path / "a.tmpl", "{% block contents %}{{ value }}{% endblock %}")
    text_path = write(tmp_path / "a.txt.tpl", "{{ value }}")

    html = registry.parse_html_file(html_path).render(value="<b>")
    assert html == "<body>&lt;b&gt;</body>"
    assert registry.parse_text_file(text_path).render(value="<b>") == "<b>"


def test_undefined_variables_fail(tmp_path):
    registry = make_registry(tmp_path)
    tmpl = registry.parse_text("{{ missing }}", tmp_path / "x.md")
    with pytest.raises(UndefinedError):
        tmpl.render()


def test_globals_are_available(tmp_path):
    registry = make_registry(tmp_path, hashed={"/x.css": "/x.abc.css"})
    tmpl = registry.parse_text(
        '{{ link("/x.css") }} {{ link("/y.css") }} {{ dev_mode }}', tmp_path / "x.tpl"
    )
    assert tmpl.render() == "/x.abc.css /y.css False"
    css = registry.parse_text("{{ pygments_css() }}", tmp_path / "x.tpl").render()
    assert ".highlight" in css


def test_trailing_newline_is_kept(tmp_path):
    registry = make_registry(tmp_path)
    assert registry.parse_text("x\n", tmp_path / "x.tpl").render() == "x\n"


def test_syntax_error_in_template(tmp_path):
    registry = make_registry(tmp_path)
    path = write(tmp_path / "broken.tmpl", "line one\n{% block contents %}{{ x }")
    with pytest.raises(TemplateLoadError, match="template syntax error on line") as excinfo:
        registry.parse_html_file(path)
    assert excinfo.value.source_path == path


def test_syntax_error_in_text(tmp_path):
    registry = make_registry(tmp_path)
    with pytest.raises(TemplateLoadError):
        registry.parse_text("{% if %}", tmp_path / "x.md")


def test_missing_default_template(tmp_path):
    registry = TemplateRegistry([tmp_path], link=lambda href: href)
    with pytest.raises(ProjectStructureError, match="missing default template"):
        registry.load_default(tmp_path / "sitkin" / "default.tmpl")


def test_broken_default_template(tmp_path):
    with pytest.raises(ProjectStructureError, match="error loading default template"):
        make_registry(tmp_path, default="{% block contents %}")


def test_rfc3339():
    assert rfc3339(date(2018, 3, 5)) == "2018-03-05T00:00:00Z"
    assert rfc3339(datetime(2018, 3, 5, 12, 30)) == "2018-03-05T12:30:00Z"
    aware = datetime(2018, 3, 5, 12, 30, tzinfo=timezone(timedelta(hours=2)))
    assert rfc3339(aware) == "2018-03-05T12:30:00+02:00"


def test_xml_escape():
    assert xml_escape('<a & "b">') == "&lt;a &amp; &quot;b&quot;&gt;"
    assert xml_escape("it's") == "it&apos;s"
    assert xml_escape(Markup("<p>x</p>")) == "&lt;p&gt;x&lt;/p&gt;"


def test_text_template_not_utf8(tmp_path):
    registry = make_registry(tmp_path)
    path = tmp_path / "feed.xml.tpl"
    path.write_bytes(b"\xff\xfe")
    with pytest.raises(TemplateLoadError, match="not valid UTF-8") as excinfo:
        registry.parse_text_file(path)
    assert excinfo.value.source_path == path
    assert isinstance(excinfo.value.original_error, UnicodeDecodeError)
