from setuptools import setup, find_namespace_packages

setup(
    name="cpamm",
    version="0.1.0",
    packages=find_namespace_packages(include=["cpamm", "cpamm.*"]),
    install_requires=[
        "msgpack",
        "PyNaCl",
        "pycryptodome",
        "prometheus_client",
        "psutil",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["cpamm=cpamm.cli:main"],
    },
)
