from setuptools import setup, find_packages

setup(
    name="borrowck",
    version="0.1.0",
    description="borrowck — ownership and borrow legality checker",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "z3-solver>=4.12.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "borrowck=borrowck.cli:main",
        ],
    },
)
