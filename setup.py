from setuptools import setup, find_namespace_packages

setup(
    name="TagGrid",
    version="0.1",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["taggrid*"]),
    description="Multi-agent tag on a bounded grid, with a parallel decision phase and a sequential commit phase.",
    author="P. van Doesburg",
    author_email="petervandoesburg11@gmail.com",
    url="https://github.com/doesburg11/predpreygrass",
    install_requires=[
        "numpy",
        "pygame",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
