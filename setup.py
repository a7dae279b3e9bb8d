"""
Setup script for Vehicle Report Pipeline

A chunked, multi-stage job pipeline that turns used-vehicle inspection
evidence into condition reports with strictly ordered, self-advancing jobs.
"""

from setuptools import setup, find_packages
import pathlib

here = pathlib.Path(__file__).parent.resolve()

# Get the long description from the README file
try:
    long_description = (here / "README.md").read_text(encoding="utf-8")
except FileNotFoundError:
    long_description = """
    Vehicle Report Pipeline

    Groups inspection photos, OBD2 screenshots and title documents into
    size-bounded chunks, runs them as an ordered chain of analysis jobs
    followed by research stages, and assembles the final condition report.
    """

setup(
    name="vehicle-report-pipeline",
    version="1.0.0",
    description="Chunked multi-stage job pipeline for vehicle condition reports",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Vehicle Report Pipeline Team",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="job pipeline, vehicle inspection, chunking, async, postgresql",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        # Core dependencies
        "asyncpg>=0.27.0",
        "click>=8.0.0",

        # Analysis engine HTTP client and upload throttling
        "httpx>=0.24.0",
        "asyncio-throttle>=1.0.2",

        # Configuration and serialization
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "coverage>=6.0.0",
            "flake8>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vehicle-report-pipeline=vehicle_report_pipeline.cli.main:main",
            "vrp=vehicle_report_pipeline.cli.main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "vehicle_report_pipeline": [
            "sql/*.sql",
        ],
    },
)
