from setuptools import find_packages, setup

setup(
    name="cineflow",
    version="0.1.0",
    description="IPTV catalog browser with a header-rewriting stream proxy",
    packages=find_packages(exclude=("tests", "tests.*", "venv")),
    python_requires=">=3.11",
    install_requires=[
        "requests",
        "prompt-toolkit",
        "python-dotenv",
        "fastapi",
        "starlette",
        "uvicorn",
        "httpx",
    ],
    extras_require={
        "dev": [
            "black",
            "pytest",
            "isort",
        ]
    },
    entry_points={
        "console_scripts": [
            "cineflow=cineflow.main:main",
            "cineflow-browse=cineflow.main:browse",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
)
