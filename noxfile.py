import nox

# If a package is not installed in the virtualenv, raise an error
# (default is False and the package is loaded from the system)
nox.options.error_on_external_run = True


def install_cpu_torch(session: nox.Session) -> None:
    """
    Install the CPU version of pytorch.
    The solver runs on the CPU only, and the CPU wheel is a much smaller
    download than the default `torch` package hosted on pypi.
    """
    session.install(
        "torch", "--extra-index-url", "https://download.pytorch.org/whl/cpu"
    )


@nox.session(python=["3.11"])
def tests(session: nox.Session) -> None:
    """Run the tests."""
    install_cpu_torch(session)
    session.install("-r", "requirements_dev.txt")
    session.install(".[test]")
    session.run("pytest", *session.posargs)


@nox.session(python=["3.11"])
def tests_normal_equations(session: nox.Session) -> None:
    """Run the tests with the normal equations as default assembly."""
    install_cpu_torch(session)
    session.install("-r", "requirements_dev.txt")
    session.install(".[test]")
    session.run(
        "pytest", *session.posargs, env={"SKARAP_ASSEMBLY": "normal_equations"}
    )
