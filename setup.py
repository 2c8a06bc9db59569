"""
Setup configuration for stateform - declarative infrastructure reconciliation
"""
from setuptools import setup, find_packages
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

requirements = (this_directory / "requirements.txt").read_text().strip().split("\n")

version = "0.1.0"

setup(
    name="stateform",
    version=version,
    author="stateform Contributors",
    description="Plan and apply declarative cloud resource documents against recorded state",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Packages
    package_dir={"": "src"},
    packages=find_packages(where="src", exclude=["tests", "tests.*"]),
    include_package_data=True,

    # Requirements
    python_requires=">=3.8",
    install_requires=requirements,

    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "pytest-mock>=3.0",
            "black>=22.0",
            "isort>=5.0",
            "ruff>=0.0.280",
        ],
    },

    entry_points={
        "console_scripts": [
            "stateform=stateform.cli.main:main",
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],

    keywords="infrastructure-as-code, provisioning, aws, ecs, dependency-graph, devops",
)
