"""Setup project."""

from setuptools import setup, find_packages

setup(
    name='mzpsm',
    packages=find_packages(exclude=["tests", "tests.*"]),
    version='0.1.0-alpha',
    description='Mass spectrometry data file and search result interoperability',
    package_data={
        "mzpsm": ["data/*.xml"],
    },
    entry_points={
        'console_scripts': [
            "mzpsm = mzpsm.tools.cli:main"
        ],
    },
    classifiers=[
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Development Status :: 3 - Alpha"
    ],
    install_requires=[
        "click",
        "colorama",
        "lxml",
        "numpy",
        "psims",
        "pyteomics >= 4.5.3",
    ],
    extras_require={
        "agilent": [
            "pythonnet >= 3.0",
        ],
        "test": [
            "pytest",
        ],
    },
)
