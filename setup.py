"""Setup configuration for EZ Kiosk Ops package."""

from setuptools import setup, find_packages

setup(
    name="ezkiosk",
    version="1.0.0",
    description="Kiosk advertising operations: host commission splits and Google Drive folder lifecycle",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="EZ Kiosk Team",
    python_requires=">=3.9",
    packages=find_packages(where=".", include=["ezkiosk*"]),
    package_dir={"": "."},
    install_requires=[
        "python-dotenv==1.0.1",
        "PyYAML==6.0.2",
        "requests==2.32.3",
        "pytz>=2020.1",
        "jsonschema==4.23.0",
        "supabase>=2.5.0",
        "schedule==1.2.0",
        "stripe>=8.0.0",
        "google-api-python-client>=2.100.0",
        "google-auth>=2.22.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ezkiosk-worker=ezkiosk.worker:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
