from setuptools import find_packages, setup

setup(
    name="meld",
    version="0.2.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        "console_scripts": [
            "meld=meld.cli:main",
        ],
    },
    extras_require={
        "test": ["pytest>=7"],
    },
    python_requires=">=3.10",
    description="meld — local configuration version store",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "Programming Language :: Python :: 3.12",
    ],
)
