"""Unit tests for the template engine."""

import pytest

from brandsentry.reports.template_engine import DEFAULT_TEMPLATES_DIR, TemplateEngine


def test_render_simple_template(tmp_path):
    """Create a temporary template and render it with context."""
    templates_dir = tmp_path / "templates"
    templates_dir.mkdir()
    template_file = templates_dir / "simple.md.j2"
    template_file.write_text("Hello {{ name }}\nValue: {{ value }}\n")

    engine = TemplateEngine(templates_dir=str(templates_dir))
    rendered = engine.render("simple.md.j2", {"name": "example.com", "value": 42})
    assert rendered == "Hello example.com\nValue: 42\n"


def test_list_templates(tmp_path):
    """Ensure listing returns created templates."""
    templates_dir = tmp_path / "templates"
    templates_dir.mkdir()
    (templates_dir / "b.j2").write_text("B")
    (templates_dir / "a.j2").write_text("A")

    engine = TemplateEngine(templates_dir=str(templates_dir))
    assert engine.list_templates() == ["a.j2", "b.j2"]


def test_packaged_templates_are_default():
    engine = TemplateEngine()
    assert engine.templates_dir == DEFAULT_TEMPLATES_DIR
    assert {"run_report.md.j2", "trend_report.md.j2"} <= set(engine.list_templates())


def test_missing_template_raises(tmp_path):
    """Missing templates produce a FileNotFoundError from render."""
    engine = TemplateEngine(templates_dir=str(tmp_path / "empty"))
    with pytest.raises(FileNotFoundError):
        engine.render("does-not-exist.j2", {})


def test_undefined_context_is_an_error(tmp_path):
    (tmp_path / "strict.j2").write_text("{{ missing }}")
    engine = TemplateEngine(templates_dir=tmp_path)
    with pytest.raises(Exception, match="missing"):
        engine.render("strict.j2", {})
