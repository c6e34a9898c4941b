import setuptools

try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Provision containers on demand with the Wave service"

setuptools.setup(
    name="wave-cli",
    version="0.1.0",
    description="Provision containers on demand with the Wave service",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src", include=["wave_cli", "wave_cli.*"]),
    include_package_data=True,
    install_requires=[
        "httpx>=0.27",
        "pathspec>=0.12,<1.0",
        "pydantic>=2.11",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "rich>=13.0",
        "typer>=0.12",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "wave=wave_cli.cli.main:app",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
)
