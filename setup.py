from setuptools import setup, find_packages


setup(
    name="Barflow",
    version="0.1.0",
    description="Deterministic bar-by-bar backtesting kernel: streaming indicators, signals and position accounting",
    author="Andrea Ferrante",
    author_email="nonicknamethankyou@gmail.com",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Financial and Insurance Industry",
        "Topic :: Office/Business :: Financial :: Investment",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3 :: Only",
    ],
    keywords="backtesting, indicators, trading, sliding window",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10, <4",
    install_requires=["pandas", "numpy", "polars", "pyarrow", "matplotlib", "tqdm"],
    extras_require={"test": ["pytest"]},
)
