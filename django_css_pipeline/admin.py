from django.contrib import admin
from .models import UrlFile


@admin.register(UrlFile)
class UrlFileAdmin(admin.ModelAdmin):
    list_display = ('css_type', 'url_tag', 'vary', 'filename', 'updated_at')
    list_filter = ('css_type', 'updated_at')
    search_fields = ('url_tag', 'vary', 'filename')
    readonly_fields = ('css_type', 'url_tag', 'vary', 'filename', 'created_at', 'updated_at')
    fields = readonly_fields

    # Rows are written by the pipeline only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
