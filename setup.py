"""Setup script for the voice chat client."""

from setuptools import setup, find_packages

setup(
    name="voice-chat-client",
    version="1.0.0",
    description="Streaming chat client with voice input and read-aloud replies",
    author="Your Name",
    packages=find_packages(include=['voice_chat', 'voice_chat.*', 'mocks']),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0.0",
        "google-generativeai>=0.3.0",
        "elevenlabs>=2.0.0",
        "pygame>=2.5.0",
        "structlog>=23.0.0",
        "click>=8.0.0",
        "httpx>=0.25.0",
        "numpy>=1.24.0",
        "sounddevice>=0.4.6",
        "soundfile>=0.12.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "voice-chat=voice_chat.cli.main:cli",
        ],
    },
)
