#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""The setup script."""
import os
import re

from setuptools import find_packages, setup

HERE = os.path.dirname(os.path.abspath(__file__))


def get_version() -> str:
    filename: str = os.path.join(HERE, "rethinksync", "__init__.py")
    with open(filename) as fp:
        contents = fp.read()
    pattern = r"^__version__ = \"(.*?)\"$"
    return re.search(pattern, contents, re.MULTILINE).group(1)


def get_requirements(name: str) -> list:
    with open(os.path.join(HERE, "requirements", name)) as fp:
        return [
            line.strip()
            for line in fp
            if line.strip() and not line.startswith("#")
        ]


# Package meta-data.
NAME = "rethinksync"
DESCRIPTION = "RethinkDB to Elasticsearch/OpenSearch sync"
URL = "https://github.com/rethinksync/rethinksync"
AUTHOR = MAINTAINER = "rethinksync contributors"
AUTHOR_EMAIL = MAINTAINER_EMAIL = "maintainers@rethinksync.dev"
PYTHON_REQUIRES = ">=3.9.0"
VERSION = get_version()
KEYWORDS = [
    "change data capture",
    "changefeed",
    "elasticsearch",
    "opensearch",
    "rethinkdb",
]
LICENSE = "MIT"
CLASSIFIERS = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Natural Language :: English",
    "Programming Language :: Python :: 3.9",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Programming Language :: Python :: Implementation :: CPython",
    "License :: OSI Approved :: MIT License",
    "Operating System :: OS Independent",
]
SCRIPTS = ["bin/rethinksync"]

PACKAGES = find_packages(include=["rethinksync"])

with open(os.path.join(HERE, "README.rst")) as fp:
    README = fp.read()

INSTALL_REQUIRES = get_requirements("base.txt")
EXTRAS_REQUIRE = {
    "test": get_requirements("test.txt"),
    "dev": get_requirements("dev.txt"),
}

setup(
    name=NAME,
    author=AUTHOR,
    license=LICENSE,
    maintainer=MAINTAINER,
    maintainer_email=MAINTAINER_EMAIL,
    author_email=AUTHOR_EMAIL,
    classifiers=CLASSIFIERS,
    python_requires=PYTHON_REQUIRES,
    description=DESCRIPTION,
    long_description=README,
    long_description_content_type="text/x-rst",
    install_requires=INSTALL_REQUIRES,
    extras_require=EXTRAS_REQUIRE,
    include_package_data=True,
    keywords=KEYWORDS,
    packages=PACKAGES,
    scripts=SCRIPTS,
    url=URL,
    version=VERSION,
    zip_safe=False,
)
