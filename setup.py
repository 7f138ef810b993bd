"""Install the organization onboarding service."""

from setuptools import setup, find_packages

setup(
    name='ident-onboarding',
    version='0.1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        "flask",
        "flask-sqlalchemy",
        "sqlalchemy",
        "celery",
        "kombu",
        "redis",
        "requests",
        "pyjwt",
        "pytz",
        "python-json-logger>=3.1",
        "click",
    ],
    extras_require={
        'test': [
            "pytest",
            "fakeredis",
        ]
    },
    entry_points={
        'console_scripts': [
            'onboarding-worker=onboarding.worker:main',
        ]
    },
    zip_safe=False
)
