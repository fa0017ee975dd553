"""Setup script for the LandComp orchestration engine."""

from setuptools import find_namespace_packages, setup

setup(
    name="landcomp",
    version="0.1.0",
    packages=find_namespace_packages(include=["landcomp", "landcomp.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "httpx>=0.27",
        "langchain-core>=0.2",
        "langchain-ollama>=0.1",
        "prometheus-client>=0.20",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "python-dotenv>=1.0",
        "structlog>=24.1",
        "tenacity>=8.2",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": ["pytest>=8.0", "pytest-asyncio>=0.23", "pytest-httpx>=0.30"],
    },
    description="LandComp - capability-based agent orchestration engine",
    author="LandComp Team",
)
