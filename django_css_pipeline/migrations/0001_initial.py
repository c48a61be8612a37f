# Generated for django-css-pipeline

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='UrlFile',
            fields=[
                ('id', models.AutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('css_type', models.CharField(choices=[('ccss', 'Critical CSS'), ('ucss', 'Unused CSS removed'), ('css', 'Combined CSS')], max_length=8)),
                ('url_tag', models.CharField(help_text='URL, page type or 404 sentinel', max_length=500)),
                ('vary', models.CharField(blank=True, default='', help_text='Cache variance fingerprint', max_length=1000)),
                ('filename', models.CharField(help_text='Content digest of the CSS file, without extension', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Generated CSS file',
                'verbose_name_plural': 'Generated CSS files',
            },
        ),
        migrations.AddConstraint(
            model_name='urlfile',
            constraint=models.UniqueConstraint(fields=('css_type', 'url_tag', 'vary'), name='unique_css_variant'),
        ),
    ]
