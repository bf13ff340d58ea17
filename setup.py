"""Packaging for propdb: chunked key-value databases on a flat property store."""

from setuptools import find_packages, setup

setup(
    name="propdb",
    version="0.1.0",
    description="Chunked key-value databases on top of a flat string property store",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "click>=8.1",
        "diskcache>=5.6",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=8.0"],
    },
    entry_points={
        "console_scripts": ["propdb=propdb.cli:main"],
    },
)
