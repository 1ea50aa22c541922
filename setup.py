from setuptools import setup, find_packages

setup(
    name="golf-field-ranker",
    version="0.1.0",
    description="Player performance ranking engine for golf event fields",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.22.4",
        "pandas>=1.5.3",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "field-rank=fieldrank.main:main",
        ],
    },
)
