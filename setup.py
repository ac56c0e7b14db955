"""Setup configuration for apkforge."""

from setuptools import setup, find_packages

setup(
    name="apkforge",
    version="1.0.0",
    description="Background service turning prompts into built, published Flutter apps",
    author="Your Name",
    packages=find_packages(include=["apkforge", "apkforge.*"]),
    install_requires=[
        "click>=8.1.7",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "httpx>=0.25.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "apkforge=apkforge.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
