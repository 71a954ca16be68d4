from setuptools import find_namespace_packages, setup

setup(
    name="bigreplicate",
    version="0.1.0",
    packages=find_namespace_packages(include=["bigreplicate", "bigreplicate.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click",
        "python-dotenv",
        "pydantic>=2",
        "rich",
        "google-api-core",
        "google-auth",
        "google-cloud-bigquery",
        "google-cloud-storage",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "bigreplicate = bigreplicate.main:start_cli",
        ],
    },
    author="Joel M",
    author_email="jtmcn.dev@gmail.com",
    description="A command-line tool for copying missing BigQuery tables between projects via GCS.",
    license="MIT",
    keywords="bigquery gcs replication",
)
