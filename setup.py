from setuptools import find_packages, setup

setup(
    name="pytest-xmlrunlistener",
    version="0.1.0",
    author="Kim Gustyr",
    author_email="khvn26@gmail.com",
    entry_points={"pytest11": ["xmlrunlistener = pytest_xmlrunlistener.plugin"]},
    packages=find_packages(
        include=["*"],
        exclude=["tests*"],
    ),
    python_requires=">=3.9",
    install_requires=[
        "pytest>=7",
        "pydantic>=2",
        "requests",
    ],
    extras_require={
        "test": ["pytest-httpserver", "hypothesis", "pytest-xdist", "werkzeug"],
    },
)
