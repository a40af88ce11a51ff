# docengine/templatetags/markdown_tags.py

from django import template
from django.utils.safestring import mark_safe

from docengine.markdown.renderer import render_markdown

register = template.Library()


@register.filter(name="markdown")
def markdown_filter(value):
    return mark_safe(render_markdown(value))


@register.filter(name="markdown_presentation")
def markdown_presentation_filter(value):
    """Render markdown with slides laid out for reveal.js instead of the preview"""
    return mark_safe(
        render_markdown(value, context={"options": {"is_for_preview": False}})
    )


@register.simple_tag(takes_context=True)
def markdown_with_context(context, value):
    """Template tag that anchors relative links at the document named in the template context"""
    render_context = {
        "file_path": context.get("file_path"),
        "project_directory_path": context.get("project_directory_path"),
    }
    return mark_safe(render_markdown(value, context=render_context))
