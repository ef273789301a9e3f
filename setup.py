from setuptools import setup, find_packages

setup(
    name="pointcloth",
    version="0.1.0",
    description="Timing and rendering engine for point-light cloth psychophysics stimuli",
    author="pointcloth contributors",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "torch>=1.12.0",
        "numpy>=1.21.0",
        "PyQt5>=5.15.0",
        "pyqtgraph>=0.12.0",
        "PyYAML>=6.0",
        "matplotlib>=3.5",
    ],
    extras_require={
        "hdf5": [
            "h5py>=3.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=3.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
            "h5py>=3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pointcloth=pointcloth.cli:main",
        ],
    },
)
