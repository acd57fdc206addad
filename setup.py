#!/usr/bin/env python3
"""
Setup script for the Freenet Client Protocol (FCP) client
"""

from setuptools import setup, find_packages

setup(
    name="fcp-client",
    version="0.1.0",
    description="Freenet Client Protocol (FCP) client library and command-line tool",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "typer>=0.12.3",
        "click>=8.1.7",
        "rich>=13.9.2",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        'console_scripts': [
            'fcp=fcp_client.fcp_cli:main',
        ],
    },
)
