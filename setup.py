"""Package setup for usage-billing."""

from setuptools import setup

setup(
    name="usage-billing",
    version="1.0.0",
    description="In-arrear usage invoice items for metered subscriptions",
    packages=["usage_billing"],
    python_requires=">=3.9",
    install_requires=[
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
