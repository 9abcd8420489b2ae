from setuptools import setup, find_packages

setup(
    name="nutritrack-reminders",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "pydantic",
        "pydantic-settings",
        "python-dotenv",
        "celery",
        "firebase-admin",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
        "tzdata",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
