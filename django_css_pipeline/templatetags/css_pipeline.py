from django import template
from django.utils.html import format_html
from django.utils.safestring import mark_safe

from ..conf import app_settings

register = template.Library()


@register.simple_tag(takes_context=True)
def critical_css(context):
    """
    Inject critical CSS if available.
    """
    request = context.get("request")
    css = getattr(request, "critical_css", None)
    if not css:
        return ""

    error_attr = ' data-error="failed to generate"' if getattr(request, "critical_css_error", False) else ""
    css += app_settings.CCSS_DEFAULT_CSS or ""
    return mark_safe(f'<style id="css-pipeline-ccss"{error_attr}>{css}</style>')


@register.simple_tag(takes_context=True)
def unused_css(context):
    """
    Link the unused-CSS-removed stylesheet if one was generated.
    """
    request = context.get("request")
    url = getattr(request, "unused_css_url", None)
    if not url:
        return ""
    return format_html('<link rel="stylesheet" href="{}" id="css-pipeline-ucss">', url)
