from setuptools import find_packages, setup

setup(
    name="federate",
    version="0.1.0",
    description="Re-project source sheet records into a federated workbook",
    packages=find_packages(include=["federate", "federate.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
