import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="s3zipper",
    version="0.0.1",
    description="Stream objects under an S3 prefix into a zip archive uploaded to S3, without staging it on disk.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.7',
    install_requires=[
        "boto3",
        "smart-open[s3]>=5.1.0",
        "tqdm",
    ],
    extras_require={
        "test": [
            "pytest",
            "moto[s3]>=5",
        ],
    },
    entry_points = {
        'console_scripts': [
            's3zipper=s3zipper.commands:main',
        ],
    }
)
