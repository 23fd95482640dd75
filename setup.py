"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/zackees/fuzzbundle"
KEYWORDS = "fuzzing fuzz-testing bundle cmake bazel maven gradle jazzer libfuzzer"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_version() -> str:
    with open(os.path.join(HERE, "src", "fuzzbundle", "__init__.py"), encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="fuzzbundle",
        version=read_version(),
        description="Bundle fuzz tests into self-contained archives",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.8",
        install_requires=[
            "PyYAML>=6.0",
            "requests>=2.28",
        ],
        extras_require={
            "test": ["pytest>=7.0"],
        },
        entry_points={
            "console_scripts": [
                "fuzzbundle=fuzzbundle.cli:main",
            ],
        },
        include_package_data=True)
