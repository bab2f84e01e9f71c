"""
Setup configuration for eureka_client library.

This library registers service instances with a Eureka registry and keeps a
local cache of the registry for peer lookup.
"""

from setuptools import setup, find_packages

setup(
    name="eureka_client",
    version="1.0.0",
    description="Async Eureka service discovery client (registration, heartbeats, registry cache)",
    author="Neural Hive Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.25.2",
        "dnspython>=2.4.0",
        "structlog>=23.1.0",
        "opentelemetry-api>=1.21.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "prometheus-client>=0.17.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.11.0",
            "pytest-cov>=4.1.0",
            "black>=23.7.0",
            "mypy>=1.4.0",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
