import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="sidechain-console",
    version="1.0.0",
    description="Setup and onboarding console for a sidechain deployment",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["sidechain_console", "sidechain_console.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "python-multipart",
        "pydantic>=2",
        "sqlalchemy>=2",
        "pymysql",
        "requests",
        "web3",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
)
