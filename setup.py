from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

with open("requirements.txt", "r") as fh:
    reqs = fh.read()

setup(
    name="med-filesort",
    version="0.3.0",
    description="Polling service that sorts incoming medical imaging files into a patient-organized tree.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=reqs,
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={'console_scripts': ['filesort = filesort.cli.__main__:cli',]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha"
    ],
    python_requires='>=3.10',
)
