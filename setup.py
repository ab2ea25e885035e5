"""
Setup script for the AgileStack core plugin registry.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="agilestack-core",
    version="0.1.0",
    author="AgileStack Team",
    description="Plugin registry for AgileStack: Docker-backed plugin lifecycle over NATS",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "agilestack": ["config/*.yaml", "config/*.json", "proto/*.proto"],
    },
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Software Distribution",
    ],
    python_requires=">=3.10",
    install_requires=[
        req for req in requirements
        if not req.startswith("pytest")
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "grpcio-tools>=1.60.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "agilestack-core=agilestack.main:run",
        ],
    },
)
