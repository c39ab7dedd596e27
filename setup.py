"""
Setup configuration for OnPage Scraper
Resilient, incremental structured-data extraction engine.
"""

from setuptools import setup, find_packages

setup(
    name="onpage-scraper",
    version="2.1.0",
    description="Self-healing selectors, semantic field detection and infinite-scroll collection",
    author="OnPage Team",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "docs"]),
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "requests>=2.31",
        "beautifulsoup4>=4.12",
        "soupsieve>=2.5",
        "lxml>=4.9",
        "playwright>=1.40",
        "validators>=0.22",
        "humanize>=4.0",
        "tenacity>=8.2",
        "cachetools>=5.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
