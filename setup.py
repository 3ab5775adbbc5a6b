"""
Cherry_harvest packaging setup.
"""

__authors__ = "Norbert Manthey <nmanthey@amazon.de>"
__copyright__ = "Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved."
# SPDX-License-Identifier: Apache-2.0

import os
from setuptools import find_packages, setup

# Declare your non-python data files:
# Files underneath configuration/ will be copied into the build preserving the
# subdirectory structure if they exist.
data_files = []
if os.path.exists("configuration"):
    for root, dirs, files in os.walk("configuration"):
        data_files.append((os.path.relpath(root, "configuration"), [os.path.join(root, f) for f in files]))

setup(
    name="cherry-harvest",
    version="1.0.0",
    description="Find cherry-picked commits in git repositories",
    license="Apache-2.0",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "datasketch>=2.0,<3",
        "unidiff",
    ],
    extras_require={
        "test": ["pytest"],
        "doc": ["sphinx"],
    },
    entry_points={
        "console_scripts": [
            "git-cherry-harvest=cherry_harvest.cherry_harvest:main",
        ],
    },
    # include data files
    data_files=data_files,
)
