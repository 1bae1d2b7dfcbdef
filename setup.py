from setuptools import setup, find_namespace_packages

setup(
    name="lyric-engine",
    version="0.1.0",
    description="Convert timed song lyrics between LRC, Enhanced LRC, TTML, Apple Music JSON, ASS, QRC, KRC, YRC, LYS, LYL, SPL and LQE",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.10",
    license="MIT",
    packages=find_namespace_packages(include=["lyric_engine", "lyric_engine.*"]),
    package_data={"lyric_engine": ["py.typed"]},
    install_requires=[
        "colorama",
        "regex",
        "typer",
        "opencc-python-reimplemented",
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "ruff",
            "mypy",
        ],
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "lyric-engine=lyric_engine.cli:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Text Processing",
    ],
    keywords="lyrics lrc ttml qrc krc yrc karaoke subtitles converter",
)
