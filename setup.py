# setup.py
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="kdesdm", # Название пакета, которое будет использоваться при pip install
    version="0.1.0",
    description="KDE-based presence/background habitat suitability modeling",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]), # Автоматически находит пакеты
    install_requires=[
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",
        "scikit-learn>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Scientific/Engineering :: GIS",
        "Intended Audience :: Science/Research",
    ],
    python_requires=">=3.9", # cancel_futures в ThreadPoolExecutor.shutdown
    entry_points={
        'console_scripts': [
            'kdesdm=kdesdm.cli.sdm_cli:main',
        ],
    },
)
