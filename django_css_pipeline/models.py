from django.db import models


class UrlFile(models.Model):
    """Maps a (type, url tag, vary) variant to its generated CSS file."""

    TYPE_CHOICES = [
        ("ccss", "Critical CSS"),
        ("ucss", "Unused CSS removed"),
        ("css", "Combined CSS"),
    ]

    css_type = models.CharField(max_length=8, choices=TYPE_CHOICES)
    url_tag = models.CharField(max_length=500, help_text="URL, page type or 404 sentinel")
    vary = models.CharField(max_length=1000, blank=True, default="", help_text="Cache variance fingerprint")
    filename = models.CharField(max_length=64, help_text="Content digest of the CSS file, without extension")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Generated CSS file"
        verbose_name_plural = "Generated CSS files"
        constraints = [
            models.UniqueConstraint(
                fields=["css_type", "url_tag", "vary"], name="unique_css_variant"
            ),
        ]

    def __str__(self):
        return f"{self.css_type.upper()} for {self.url_tag} [{self.vary}]"
