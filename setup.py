from setuptools import setup, find_packages

setup(
    name="ratelab",
    version="0.1.0",
    description="Side-by-side admission control with fixed window, sliding window, token bucket and leaky bucket limiters",
    packages=find_packages(include=["ratelab", "ratelab.*"]),
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "redis>=5.0",
        "uvicorn",
        "httpx",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "fakeredis[lua]>=2.21",
        ],
    },
    python_requires=">=3.11",
)
