from setuptools import find_packages, setup
import os

HERE = os.path.abspath(os.path.dirname(__file__))


def load_requirements(path: str) -> list[str]:
    """Load requirements from a local file.

    Resolved relative to this file so isolated builds (wheel-from-sdist) find
    it; a missing file yields no requirements.
    """
    req_path = os.path.join(HERE, path)
    try:
        with open(req_path, "r", encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip() and not line.startswith("#")]
    except FileNotFoundError:
        return []


setup(
    name='vpncheck',
    version='1.0.0',
    description='Domain infrastructure recon and bypass payload probing',
    license='GPL-3.0',
    packages=find_packages(include=["vpncheck", "vpncheck.*"]),
    include_package_data=True,
    python_requires='>=3.9',
    install_requires=load_requirements("requirements.txt"),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'vpncheck=vpncheck.cli:main',
        ],
    }
)
