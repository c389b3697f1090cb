from setuptools import setup, find_packages

setup(
    name="fincalc_engine",
    version="0.1.0",
    description="Quantitative finance calculation engine: bonds, options, cash flows, depreciation, portfolio and risk",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
