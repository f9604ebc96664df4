import os

import setuptools

setuptools.setup(
    name="termie",
    version="0.1.0",
    license="MIT",
    description="A trio client library for bots on Termie chat servers, with multi-server support.",
    keywords="bot chat async trio socketio",
    install_requires=open(os.path.join(os.path.dirname(__file__), "requirements.txt"))
    .read()
    .strip()
    .split("\n"),
    extras_require={"test": ["pytest>=7", "pytest-trio>=0.8"]},
    long_description=open(os.path.join(os.path.dirname(__file__), "README.md")).read(),
    long_description_content_type="text/markdown",
    packages=["termie"],
    python_requires=">=3.8",
    classifiers=[
        "Framework :: Trio",
        "Topic :: Communications :: Chat",
        "Topic :: Software Development :: Libraries",
    ],
)
