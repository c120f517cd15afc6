from setuptools import setup, find_packages

setup(
    name="dicomsynth",
    version="0.1.0",
    description="Reproducible synthetic DICOM population generator",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pydicom>=3.0.0",
        "numpy>=1.20.0",
        "tqdm>=4.65.0",
        "pandas>=2.0.0",
        "PyYAML>=6.0",
    ],
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "dicomsynth=dicomsynth.cli:main",
        ]
    },
)
