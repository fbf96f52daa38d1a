from setuptools import setup, find_packages

setup(
    name="uniproxy",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    include_package_data=True,
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "httpx>=0.26.0",
        "playwright>=1.40.0",
        "cryptography>=41.0.0",
        "click>=8.1.7",
        "rich>=13.7.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "uniproxy=main:cli",
        ],
    },
    python_requires=">=3.10",
    author="Universal Proxy",
    description="Outbound mediation gateway with SSRF guarding, proxy tiers and browser scraping",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
