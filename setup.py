"""
Setup file.
"""

import os

from setuptools import find_packages, setup

NAME = "cbuild"
VERSION = "0.1.0"
URL = "https://github.com/cbuild-dev/cbuild"
KEYWORDS = "build-system incremental c cpp compiler linker kernel cross-compile"
HERE = os.path.dirname(os.path.abspath(__file__))

INSTALL_REQUIRES = [
    "psutil",
    "requests",
    "tqdm",
]

TEST_REQUIRES = [
    "pytest",
]


def read_readme() -> str:
    path = os.path.join(HERE, "DESIGN.md")
    with open(path, encoding="utf-8") as f:
        return f.read()


if __name__ == "__main__":
    setup(
        name=NAME,
        version=VERSION,
        description="Incremental build engine for C/C++ projects and kernel images",
        long_description=read_readme(),
        long_description_content_type="text/markdown",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages("src"),
        python_requires=">=3.11",
        install_requires=INSTALL_REQUIRES,
        extras_require={"test": TEST_REQUIRES},
        entry_points={
            "console_scripts": [
                "cbuild=cbuild.cli:main",
            ],
        },
        include_package_data=True)
