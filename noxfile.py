import nox

PYTHONS = ["3.11", "3.12", "3.13"]


@nox.session(python=PYTHONS)
def tests(session):
    session.install(".[dev]")
    session.run("pytest", "tests", external=True)


@nox.session(python=PYTHONS[-1])
def examples(session):
    session.install(".")
    session.run("python", "examples/icecream.py")
