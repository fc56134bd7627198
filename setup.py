from setuptools import setup, find_packages


setup(
    name="filearchive",
    version="0.1",
    packages=find_packages(),
    description="Write files and build nested tar.gz / zip archives incrementally.",
    author="vercingetorx",
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "filearchive=filearchive.cli:main",
        ]
    },
)
