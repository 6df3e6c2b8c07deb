#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="tcp-audit-pg-sink",
    version="0.1.0",
    author="tcp-audit",
    description="PostgreSQL sink for TCP connection state-change events",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=["Programming Language :: Python :: 3 :: Only"],
    install_requires=[
        "jsonschema",
        "psycopg2-binary>=2.9",
        "singer-python>=5.0.12",
        "sqlalchemy>=2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=3.8",
            "black>=18.3a0",
        ]
    },
    entry_points="""
    [console_scripts]
    tcp-audit-pg-sink=tcp_audit_pg_sink:main
    """,
    python_requires=">=3.8",
    packages=find_packages(exclude=["tests"]),
    package_data={},
    include_package_data=True,
)
