from setuptools import setup, find_packages

setup(
    name='django_css_pipeline',
    version='0.1.0',
    description='A Django app for generating critical and unused-CSS-removed stylesheets.',
    author='Your Name',
    author_email='your.email@example.com',
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        'Django>=3.2',
        'requests',
        'celery',
        'cssutils',
        'beautifulsoup4',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-django',
        ],
    },
    classifiers=[
        'Framework :: Django',
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)
