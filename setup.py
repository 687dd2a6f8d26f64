from setuptools import find_packages, setup

setup(
    name="grouping-eval",
    version="0.1.0",
    description="Compare, diagnose and calibrate clusterings of audio samples",
    packages=find_packages(include=["grouping_eval", "grouping_eval.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
        "scikit-learn>=1.3.0",
        "PyYAML>=6.0",
        "click>=8.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "grouping-eval=grouping_eval.cli:main",
        ],
    },
)
