"""Setup configuration for the jigsaw-engine package."""

from setuptools import find_packages, setup

setup(
    name="jigsaw-engine",
    version="0.1.0",
    packages=find_packages(include=["jigsaw_engine", "jigsaw_engine.*", "app", "app.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "shapely>=2.0",
        "svgwrite",
        "svgpathtools",
        "pydantic>=2.0",
        "pydantic-settings",
        "fastapi",
        "uvicorn",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-cov",
            "pillow",
            "httpx",
            "black",
            "flake8",
            "mypy",
            "isort",
        ],
    },
)
