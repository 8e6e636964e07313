from setuptools import find_packages, setup

with open("README.md", encoding="utf-8") as fh:
    long_description = fh.read()

requirements = [
    "requests>=2.32.4",
    "PyYAML>=6.0.3",
    "python-dotenv>=1.0.0",
    "cryptography>=44.0.1",
    "rich>=13.0.0",
]

setup(
    name="beacon-diagnostics",
    version="0.1.0",
    author="Beacon Developers",
    description="Server environment diagnostics and phone-home license reporting",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["beacon", "beacon.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "Topic :: Internet :: WWW/HTTP :: WSGI",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "beacon=beacon.cli:main",
        ],
    },
    include_package_data=True,
)
