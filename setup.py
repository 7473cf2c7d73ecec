from pathlib import Path

from setuptools import find_packages, setup


def read_version(path: Path) -> str:
    """Read the version of the package from its __init__.py.

    Parameters
    ----------
    path
        The path to the __init__.py file.

    Raises
    ------
    ValueError
        If no __version__ is defined in the file.
    """
    for line in path.read_text().splitlines():
        if line.startswith("__version__"):
            return line.split("=")[1].strip().strip('"')

    msg = f"No __version__ found in {path}"
    raise ValueError(msg)


# Setup the package
setup(
    name="scikit-arap",
    version=read_version(Path("src/skarap/__init__.py")),
    description="As-Rigid-As-Possible mesh deformation solved with ADMM",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "numpy",
        "scipy",
        "torch",
        "beartype",
        "jaxtyping",
    ],
    extras_require={
        "test": [
            "pytest",
            "hypothesis",
        ],
    },
)
