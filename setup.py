from setuptools import find_packages, setup

setup(
    name="constellate",
    version="0.1.0",
    description="Mood-vector atlas engine: projection, proximity clustering, constellation naming and display layout",
    packages=find_packages(include=["constellate", "constellate.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "ui": ["fastapi>=0.110", "uvicorn>=0.27"],
        "test": ["pytest>=8.0", "httpx>=0.27", "fastapi>=0.110"],
    },
    entry_points={"console_scripts": ["constellate=constellate.cli:main"]},
)
