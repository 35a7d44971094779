from setuptools import find_packages, setup

setup(
    name="olivia",
    version="0.1.0",
    packages=find_packages(exclude=("tests",)),
    install_requires=[
        "httpx>=0.25.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        "solders>=0.21.0",
        "PyNaCl>=1.5.0",
    ],
    extras_require={
        "tests": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": [
            "olivia-place-bet=olivia.entrypoints.place_bet:main",
            "olivia-init=olivia.entrypoints.init:main",
        ],
    },
    python_requires=">=3.10",
)
