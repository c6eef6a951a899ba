from setuptools import find_namespace_packages, setup
import os

HERE = os.path.abspath(os.path.dirname(__file__))


def load_requirements(path: str) -> list[str]:
    """Load requirements from a local file.

    Resolved relative to this file so isolated builds (wheel-from-sdist) still
    find it; a missing file yields no requirements.
    """
    req_path = os.path.join(HERE, path)
    try:
        with open(req_path, "r", encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip() and not line.startswith("#")]
    except FileNotFoundError:
        return []


setup(
    name='hostcheck',
    version='1.0.0',
    description='Hostname proxy, nameserver, CAA and zone hold checker',
    license='GPL-3.0',
    python_requires='>=3.9',
    # engine/, cli_parts/ and storage_parts/ carry no __init__.py
    packages=find_namespace_packages(include=["hostcheck", "hostcheck.*"]),
    include_package_data=True,
    install_requires=load_requirements("requirements.txt"),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'hostcheck=hostcheck.cli:main',
        ],
    }
)
